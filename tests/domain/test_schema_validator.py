import unittest

from mirage.domain.validation.schema_validator import InvalidSchema, SchemaValidator


LOGIN_SCHEMA = {
    "type": "object",
    "properties": {
        "email": {"type": "string", "format": "email"},
        "password": {"type": "string", "minLength": 8},
    },
    "required": ["email", "password"],
}


class TestSchemaValidator(unittest.TestCase):
    def setUp(self):
        self.validator = SchemaValidator()

    def test_valid_body(self):
        result = self.validator.validate(
            {"email": "a@example.com", "password": "long-enough"},
            LOGIN_SCHEMA,
        )
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])

    def test_missing_required_property_names_the_field(self):
        result = self.validator.validate({"email": "a@example.com"}, LOGIN_SCHEMA)

        self.assertFalse(result.is_valid)
        self.assertEqual([e.field for e in result.errors], ["/password"])
        self.assertIn("password", result.errors[0].message)

    def test_nested_errors_use_json_pointer(self):
        schema = {
            "type": "object",
            "properties": {
                "user": {
                    "type": "object",
                    "properties": {"age": {"type": "integer"}},
                }
            },
        }
        result = self.validator.validate({"user": {"age": "old"}}, schema)

        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors[0].field, "/user/age")
        self.assertEqual(result.errors[0].value, "old")

    def test_email_format_is_checked(self):
        result = self.validator.validate(
            {"email": "not-an-email", "password": "long-enough"},
            LOGIN_SCHEMA,
        )
        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors[0].field, "/email")

    def test_root_type_error_points_at_schema(self):
        result = self.validator.validate([1, 2], LOGIN_SCHEMA)

        self.assertFalse(result.is_valid)
        self.assertTrue(result.errors[0].field.startswith("#"))

    def test_malformed_schema_is_reported_not_raised(self):
        result = self.validator.validate({"a": 1}, {"type": "no-such-type"})

        self.assertFalse(result.is_valid)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].field, "schema")
        self.assertEqual(result.errors[0].message, "Invalid schema provided")

    def test_non_object_schema_is_reported(self):
        result = self.validator.validate({"a": 1}, "string")
        self.assertEqual(result.errors[0].field, "schema")

    def test_check_schema_raises(self):
        with self.assertRaises(InvalidSchema):
            self.validator.check_schema({"type": 12})
        self.validator.check_schema(LOGIN_SCHEMA)

    def test_additional_properties_allowed_by_default(self):
        result = self.validator.validate(
            {"email": "a@example.com", "password": "long-enough", "extra": 1},
            LOGIN_SCHEMA,
        )
        self.assertTrue(result.is_valid)

    def test_additional_properties_false_rejects(self):
        schema = dict(LOGIN_SCHEMA, additionalProperties=False)
        result = self.validator.validate(
            {"email": "a@example.com", "password": "long-enough", "extra": 1},
            schema,
        )
        self.assertFalse(result.is_valid)

    def test_remove_additional_strips_instead(self):
        validator = SchemaValidator(remove_additional=True)
        schema = dict(LOGIN_SCHEMA, additionalProperties=False)
        body = {"email": "a@example.com", "password": "long-enough", "extra": 1}

        result = validator.validate(body, schema)

        self.assertTrue(result.is_valid)
        self.assertNotIn("extra", result.value)
        self.assertIn("extra", body)

    def test_explicit_draft_is_honoured(self):
        schema = {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
            "type": "array",
            "prefixItems": [{"type": "integer"}],
        }
        self.assertFalse(self.validator.validate(["x"], schema).is_valid)
        self.assertTrue(self.validator.validate([1], schema).is_valid)


if __name__ == "__main__":
    unittest.main()
