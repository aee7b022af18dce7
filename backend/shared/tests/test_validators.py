import pytest
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_positive_seconds, parse_string_list


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com"]
        assert parse_string_list(origins) == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_empty_string_allowed(self):
        assert parse_string_list("  ", allow_empty=True) == []

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_json_empty_array_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("[]")

    def test_comma_separated_skips_empty_segments(self):
        assert parse_string_list("http://a.com,,http://b.com,") == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")


class TestParsePositiveSeconds:
    def test_accepts_positive(self):
        assert parse_positive_seconds(0.5, name="interval") == 0.5

    @pytest.mark.parametrize("value", [0, -1.0])
    def test_rejects_non_positive(self, value):
        with pytest.raises(ValueError, match="interval must be positive"):
            parse_positive_seconds(value, name="interval")


class _ListSettings(BaseSettings):
    cors_origins: list[str] = []
    hosts: list[str] = []


class TestStringListEnvSettingsSource:
    def test_string_list_field_passes_raw_csv(self):
        source = StringListEnvSettingsSource(_ListSettings)
        field = _ListSettings.model_fields["cors_origins"]
        assert source.prepare_field_value("cors_origins", field, "a,b", True) == "a,b"

    def test_other_list_fields_are_json_decoded(self):
        source = StringListEnvSettingsSource(_ListSettings)
        field = _ListSettings.model_fields["hosts"]
        assert source.prepare_field_value("hosts", field, '["a","b"]', True) == ["a", "b"]
