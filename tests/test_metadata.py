from __future__ import annotations

from policydesk.metadata import PolicyMetadata, extract_policy_metadata


class TestExtractPolicyMetadata:
    def test_all_fields(self) -> None:
        content = (
            "Policy Owner: Jane Doe\n"
            "Department: IT Security\n"
            "Reviewed by: John Smith\n"
            "# Scope\n"
        )
        assert extract_policy_metadata(content) == PolicyMetadata(
            owner="Jane Doe", department="IT Security", reviewer="John Smith",
        )

    def test_case_insensitive_keys(self) -> None:
        result = extract_policy_metadata("OWNER: Ops Team\nREVIEWER: Audit")
        assert result.owner == "Ops Team"
        assert result.reviewer == "Audit"

    def test_value_stops_at_second_colon(self) -> None:
        result = extract_policy_metadata("Owner: Jane: Security Lead")
        assert result.owner == "Jane"

    def test_only_first_twenty_lines(self) -> None:
        content = "\n".join(["filler"] * 20 + ["Owner: Too Late"])
        assert extract_policy_metadata(content).owner is None

    def test_later_line_wins(self) -> None:
        result = extract_policy_metadata("Owner: First\nOwner: Second")
        assert result.owner == "Second"

    def test_empty_value_ignored(self) -> None:
        result = extract_policy_metadata("Owner: Jane\nOwner:   ")
        assert result.owner == "Jane"

    def test_no_metadata(self) -> None:
        assert extract_policy_metadata("# Scope\nAll staff") == PolicyMetadata()

    def test_empty_content(self) -> None:
        assert extract_policy_metadata("") == PolicyMetadata()
