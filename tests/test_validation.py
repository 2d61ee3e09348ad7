"""Unit tests for validation.py - Ingress declaration schema validation."""

from validation import INGRESS_SCHEMA, validate_against_schema, validate_ingress


class TestValidateAgainstSchema:
    """Tests for validate_against_schema function."""

    def test_valid_document(self):
        schema = {"type": "object", "properties": {"name": {"type": "string"}}}
        is_valid, error = validate_against_schema({"name": "web"}, schema)
        assert is_valid is True
        assert error is None

    def test_error_includes_path(self):
        schema = {
            "type": "object",
            "properties": {
                "config": {
                    "type": "object",
                    "properties": {"count": {"type": "integer"}},
                }
            },
        }
        is_valid, error = validate_against_schema({"config": {"count": "x"}}, schema)
        assert is_valid is False
        assert error.startswith("config.count:")

    def test_root_error(self):
        is_valid, error = validate_against_schema([], {"type": "object"})
        assert is_valid is False
        assert error.startswith("(root):")

    def test_multiple_errors_joined(self):
        schema = {
            "type": "object",
            "properties": {"a": {"type": "string"}, "b": {"type": "string"}},
        }
        is_valid, error = validate_against_schema({"a": 1, "b": 2}, schema)
        assert is_valid is False
        assert error.split("; ")[0].startswith("a:")
        assert error.split("; ")[1].startswith("b:")


class TestValidateIngress:
    """Tests for validate_ingress function."""

    def test_valid_ingress(self, make_ingress):
        is_valid, error = validate_ingress(make_ingress("web"))
        assert is_valid is True
        assert error is None

    def test_valid_default_backend_only(self):
        ingress = {
            "metadata": {"name": "web", "namespace": "default"},
            "spec": {"backend": {"serviceName": "web", "servicePort": "http"}},
        }
        is_valid, _ = validate_ingress(ingress)
        assert is_valid is True

    def test_missing_metadata_name(self, make_ingress):
        ingress = make_ingress("web")
        del ingress["metadata"]["name"]
        is_valid, error = validate_ingress(ingress)
        assert is_valid is False
        assert "name" in error

    def test_namespace_is_optional(self, make_ingress):
        ingress = make_ingress("web")
        del ingress["metadata"]["namespace"]
        is_valid, error = validate_ingress(ingress)
        assert is_valid is True
        assert error is None

    def test_non_mapping_annotations(self, make_ingress):
        ingress = make_ingress("web")
        ingress["metadata"]["annotations"] = ["not", "a", "map"]
        is_valid, error = validate_ingress(ingress)
        assert is_valid is False
        assert "annotations" in error

    def test_missing_spec(self, make_ingress):
        ingress = make_ingress("web")
        del ingress["spec"]
        is_valid, error = validate_ingress(ingress)
        assert is_valid is False
        assert "spec" in error

    def test_non_string_annotation(self, make_ingress):
        ingress = make_ingress("web", annotations={"alb.ingress.kubernetes.io/x": 1})
        is_valid, _ = validate_ingress(ingress)
        assert is_valid is False

    def test_invalid_service_port_type(self, make_ingress):
        ingress = make_ingress("web", port=[80])
        is_valid, error = validate_ingress(ingress)
        assert is_valid is False
        assert "servicePort" in error

    def test_path_without_backend(self, make_ingress):
        ingress = make_ingress("web")
        del ingress["spec"]["rules"][0]["http"]["paths"][0]["backend"]
        is_valid, error = validate_ingress(ingress)
        assert is_valid is False
        assert "backend" in error

    def test_schema_is_draft7_object(self):
        assert INGRESS_SCHEMA["type"] == "object"
        assert "metadata" in INGRESS_SCHEMA["required"]
