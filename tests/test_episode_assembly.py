"""
Episode Assembly Test Suite

- Slot joining in contract declaration order
- Failure on empty or unusable output
- Scene-order inspection (warnings only)
- Export header
"""
import pytest


def _contract():
    from models.contract import Contract, SlotName, SlotSpec

    return Contract(
        episode_index=7,
        mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("reveal", 1)},
        optional_slots={
            SlotName.CONFLICT_PROGRESS: SlotSpec("conflict", 0),
            SlotName.COST_PAID: SlotSpec("cost", 0),
        },
    )


class TestAssemble:

    def test_empty_output_raises(self):
        from agents.assembly import assemble
        from runtime.errors import AssemblyFailure

        with pytest.raises(AssemblyFailure):
            assemble(_contract(), {})

    def test_single_slot(self):
        from agents.assembly import assemble

        assert "x" in assemble(_contract(), {"NEW_REVEAL": "x"})

    def test_declaration_order_wins_over_key_order(self):
        from agents.assembly import assemble

        output = {"COST_PAID": "c", "NEW_REVEAL": "a", "CONFLICT_PROGRESS": "b"}

        assert assemble(_contract(), output) == "a\n\nb\n\nc"

    def test_custom_separator(self):
        from agents.assembly import assemble

        output = {"COST_PAID": "c", "NEW_REVEAL": "a"}

        assert assemble(_contract(), output, separator="\n---\n") == "a\n---\nc"

    def test_text_is_emitted_verbatim(self):
        from agents.assembly import assemble

        text = "  Line one.\n\n  Line two with trailing spaces.  "

        assert assemble(_contract(), {"NEW_REVEAL": text}) == text

    def test_blank_and_non_text_slots_left_out(self):
        from agents.assembly import assemble

        output = {"NEW_REVEAL": "a", "CONFLICT_PROGRESS": "   ", "COST_PAID": 5}

        assert assemble(_contract(), output) == "a"

    def test_no_usable_text_raises(self):
        from agents.assembly import assemble
        from runtime.errors import AssemblyFailure

        with pytest.raises(AssemblyFailure, match="no usable text"):
            assemble(_contract(), {"EPILOGUE": "not declared", "NEW_REVEAL": ""})

    def test_scene_order_problems_are_logged_not_fixed(self, caplog):
        from agents.assembly import assemble

        output = {"NEW_REVEAL": "[Scene 2] Office | Day\nShe finds it.", "COST_PAID": "[Scene 1] Street | Night\nHe pays."}

        with caplog.at_level("WARNING"):
            content = assemble(_contract(), output)

        assert content.startswith("[Scene 2]")
        assert "scenes out of order" in caplog.text

    def test_assembly_summary(self):
        from agents.assembly import assembly_summary

        summary = assembly_summary(_contract(), {"NEW_REVEAL": "abc"})

        assert summary == {"NEW_REVEAL": 3, "CONFLICT_PROGRESS": None, "COST_PAID": None}


class TestScenes:

    def test_content_without_markers_is_one_scene(self):
        from agents.assembly import parse_scenes

        scenes = parse_scenes("  plain text  ")

        assert len(scenes) == 1
        assert scenes[0].scene_index == 1
        assert scenes[0].body == "plain text"

    def test_markers_split_scenes(self):
        from agents.assembly import parse_scenes

        content = "[Scene 1] Office | Day\nLine A\n\n【场景 2】街道｜夜\nLine B"
        scenes = parse_scenes(content)

        assert [s.scene_index for s in scenes] == [1, 2]
        assert scenes[0].header == "[Scene 1] Office | Day"
        assert scenes[0].body == "Line A"
        assert scenes[1].full_text == "【场景 2】街道｜夜\nLine B"

    def test_ordered_scenes_have_no_warnings(self):
        from agents.assembly import check_scene_order, parse_scenes

        report = check_scene_order(parse_scenes("[Scene 1] A\nx\n[Scene 2] B\ny"))

        assert report.ordered
        assert report.indices == [1, 2]

    def test_reversed_scenes(self):
        from agents.assembly import check_scene_order, parse_scenes

        report = check_scene_order(parse_scenes("[Scene 3] A\n[Scene 2] B\n[Scene 1] C"))

        assert report.warnings == ["scenes out of order: 3, 2, 1"]

    def test_missing_and_duplicate_indices(self):
        from agents.assembly import check_scene_order, parse_scenes

        report = check_scene_order(parse_scenes("[Scene 1] A\n[Scene 3] B\n[Scene 3] C"))

        assert "missing scene indices: 2" in report.warnings
        assert "duplicate scene indices: 3" in report.warnings
        assert "non-contiguous scene indices: 1, 3" in report.warnings


class TestFormatting:

    def test_format_as_episode(self):
        from agents.assembly import format_as_episode

        assert format_as_episode("body", 3) == "EP03\n\nbody"
        assert format_as_episode("body", 12).startswith("EP12\n\n")
