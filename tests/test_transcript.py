from coldcall.session import CallMessage
from coldcall.states import Role
from coldcall.transcript import format_evaluation, to_json_array, to_plain_text


def _messages():
    return [
        CallMessage(Role.ASSISTANT, "Joey. Go.", 1.0),
        CallMessage(Role.USER, "Hi Joey, it's Sam from Acme.", 2.0),
        CallMessage(Role.ASSISTANT, "You've got thirty seconds.", 3.0),
    ]


class TestToPlainText:
    def test_labels(self):
        assert to_plain_text(_messages()) == (
            "Joey: Joey. Go.\n"
            "Caller: Hi Joey, it's Sam from Acme.\n"
            "Joey: You've got thirty seconds."
        )

    def test_custom_assistant_label(self):
        assert to_plain_text(_messages()[:1], assistant_label="Joey - Elite") == "Joey - Elite: Joey. Go."

    def test_empty(self):
        assert to_plain_text([]) == ""


class TestToJsonArray:
    def test_roles_and_content(self):
        assert to_json_array(_messages()[:2]) == [
            {"role": "assistant", "content": "Joey. Go."},
            {"role": "user", "content": "Hi Joey, it's Sam from Acme."},
        ]

    def test_empty(self):
        assert to_json_array([]) == []


class TestFormatEvaluation:
    def test_full_evaluation(self):
        lines = format_evaluation({
            "overall_score": 8.7,
            "meeting_qualified": True,
            "weekly_contest_eligible": True,
            "category_scores": {"objection_handling": 9.1, "opening_preparation": 8.0},
            "objections_deployed": ["No budget", "Send me an email"],
            "quoted_examples": [{"category": "objection_handling", "quote": "Fair, but", "improvement": "Ask why"}],
            "coaching_provided": "Slow down on the opener.",
        }, colored=False)
        assert lines[0] == "Overall Score: 8.7/10"
        assert "Meeting Qualified: YES ✅" in lines
        assert "Weekly Contest: YES" in lines
        category_lines = [l for l in lines if l.startswith("  Opening") or l.startswith("  Objection")]
        assert category_lines[0].startswith("  Opening & Prep:")
        assert category_lines[0].endswith("8.0/10")
        assert "  • No budget" in lines
        assert '  [objection_handling] "Fair, but"' in lines
        assert "    → Ask why" in lines
        assert lines[-1] == "  Slow down on the opener."

    def test_missing_score(self):
        lines = format_evaluation({}, colored=False)
        assert lines == ["Overall Score: N/A", "Meeting Qualified: NO ❌"]
