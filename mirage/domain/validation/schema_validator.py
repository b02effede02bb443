import copy
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError, ValidationError
from jsonschema.validators import validator_for

logger = logging.getLogger(__name__)


@dataclass
class FieldError:
    field: str
    message: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "value": self.value}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[FieldError] = field(default_factory=list)
    value: Any = None


class InvalidSchema(Exception):
    """
    Raised by `check_schema` when a document is not a usable JSON Schema.
    """


@lru_cache(maxsize=512)
def _compile(schema_json: str):
    schema = json.loads(schema_json)
    cls = validator_for(schema, default=Draft7Validator)
    cls.check_schema(schema)
    return cls(schema, format_checker=cls.FORMAT_CHECKER)


def _pointer(parts) -> str:
    return "".join(f"/{part}" for part in parts)


class SchemaValidator:
    """
    Validates arbitrary JSON values against caller-supplied JSON Schemas.

    Draft 7 is assumed unless the schema names its own `$schema`.
    Compiled validators are cached by the schema's canonical JSON.
    """

    def __init__(self, remove_additional: bool = False):
        self.remove_additional = remove_additional

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    def check_schema(self, schema: Any) -> None:
        self._get_validator(schema)

    def validate(self, data: Any, schema: Any) -> ValidationResult:
        try:
            validator = self._get_validator(schema)
        except InvalidSchema:
            return ValidationResult(
                is_valid=False,
                errors=[FieldError(field="schema", message="Invalid schema provided")],
            )

        if self.remove_additional:
            data = self._strip_additional(copy.deepcopy(data), schema)

        try:
            raw_errors = sorted(
                validator.iter_errors(data),
                key=lambda e: (list(map(str, e.absolute_path)), list(map(str, e.schema_path))),
            )
        except Exception as exc:
            # Unresolvable $ref and similar only surface while validating.
            logger.warning(f"Schema failed during validation: {exc}")
            return ValidationResult(
                is_valid=False,
                errors=[FieldError(field="schema", message="Invalid schema provided")],
            )

        if raw_errors:
            return ValidationResult(
                is_valid=False,
                errors=[self._to_field_error(error) for error in raw_errors],
            )

        return ValidationResult(is_valid=True, value=data)

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _get_validator(self, schema: Any):
        if not isinstance(schema, (dict, bool)):
            raise InvalidSchema("Schema must be an object or boolean")

        try:
            schema_json = json.dumps(schema, sort_keys=True)
            return _compile(schema_json)
        except (SchemaError, TypeError, ValueError) as exc:
            raise InvalidSchema(str(exc)) from exc

    def _to_field_error(self, error: ValidationError) -> FieldError:
        path = _pointer(error.absolute_path)

        if error.validator == "required":
            missing = self._missing_property(error)
            if missing is not None:
                return FieldError(field=f"{path}/{missing}", message=error.message)

        if not path:
            return FieldError(
                field="#" + _pointer(error.schema_path),
                message=error.message,
                value=error.instance,
            )

        return FieldError(field=path, message=error.message, value=error.instance)

    @staticmethod
    def _missing_property(error: ValidationError) -> Optional[str]:
        for name in error.validator_value or []:
            if error.message.startswith(repr(name)):
                return name
        return None

    def _strip_additional(self, data: Any, schema: Any) -> Any:
        """
        Drop properties that `additionalProperties: false` would reject.
        """
        if not isinstance(schema, dict):
            return data

        if isinstance(data, dict):
            properties = schema.get("properties") or {}
            if schema.get("additionalProperties") is False and not schema.get("patternProperties"):
                for key in [k for k in data if k not in properties]:
                    del data[key]
            for key, sub_schema in properties.items():
                if key in data:
                    data[key] = self._strip_additional(data[key], sub_schema)

        elif isinstance(data, list) and isinstance(schema.get("items"), dict):
            data = [self._strip_additional(item, schema["items"]) for item in data]

        return data
