"""
Tests for slot contracts and narrative context construction.
"""
import dataclasses

import pytest

from conftest import make_project


class TestContractConstruction:

    def test_build_contract_declares_mandatory_reveal(self, contract):
        from models.contract import SlotName

        assert list(contract.mandatory_slots) == [SlotName.NEW_REVEAL]
        spec = contract.mandatory_slots[SlotName.NEW_REVEAL]
        assert spec.minimum_length == 80
        assert spec.generation_instruction.startswith("[MANDATORY]")
        assert "secret number 3 comes out" in spec.generation_instruction
        assert "the antagonist" in spec.generation_instruction
        assert spec.semantic_tag == "FACT:ANTAGONIST"
        assert dict(contract.optional_slots) == {}

    def test_optional_slots_follow_outline_flags(self):
        from models.contract import SlotName, build_contract
        from models.narrative_context import NarrativeContext

        project = make_project()
        project["outlines"][0].update({"conflict_progressed": True, "cost_paid": True})
        context = NarrativeContext.from_project(project, 1)

        contract = build_contract(1, context, min_reveal_length=120)

        assert contract.declared_order() == [
            SlotName.NEW_REVEAL,
            SlotName.CONFLICT_PROGRESS,
            SlotName.COST_PAID,
        ]
        assert contract.mandatory_slots[SlotName.NEW_REVEAL].minimum_length == 120
        assert contract.optional_slots[SlotName.COST_PAID].minimum_length == 0
        assert not contract.is_mandatory(SlotName.COST_PAID)
        assert contract.is_declared(SlotName.COST_PAID)

    def test_zero_mandatory_slots_rejected(self):
        from models.contract import Contract, SlotName, SlotSpec
        from runtime.errors import ContractError

        with pytest.raises(ContractError):
            Contract(episode_index=1, mandatory_slots={})

        with pytest.raises(ValueError):
            Contract(
                episode_index=1,
                mandatory_slots={},
                optional_slots={SlotName.COST_PAID: SlotSpec("pay", 0)},
            )

    def test_mandatory_minimum_must_be_positive(self):
        from models.contract import Contract, SlotName, SlotSpec
        from runtime.errors import ContractError

        with pytest.raises(ContractError, match="positive"):
            Contract(episode_index=2, mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("reveal", 0)})

    def test_optional_minimum_cannot_be_negative(self):
        from models.contract import Contract, SlotName, SlotSpec
        from runtime.errors import ContractError

        with pytest.raises(ContractError):
            Contract(
                episode_index=2,
                mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("reveal", 10)},
                optional_slots={SlotName.COST_PAID: SlotSpec("pay", -1)},
            )

    def test_slot_declared_twice_rejected(self):
        from models.contract import Contract, SlotName, SlotSpec
        from runtime.errors import ContractError

        with pytest.raises(ContractError, match="NEW_REVEAL"):
            Contract(
                episode_index=2,
                mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("reveal", 10)},
                optional_slots={SlotName.NEW_REVEAL: SlotSpec("reveal", 0)},
            )

    def test_contract_is_immutable(self, contract):
        from models.contract import SlotName, SlotSpec

        with pytest.raises(dataclasses.FrozenInstanceError):
            contract.episode_index = 9
        with pytest.raises(TypeError):
            contract.mandatory_slots[SlotName.COST_PAID] = SlotSpec("pay", 1)


class TestContractVariants:

    def test_first_attempt_uses_base_contract(self, contract):
        assert contract.tightened(1) is contract

    def test_second_attempt_adds_explicit_reveal_hint(self, contract):
        from models.contract import ContractVariant, SlotName

        tightened = contract.tightened(2)
        instruction = tightened.mandatory_slots[SlotName.NEW_REVEAL].generation_instruction

        assert tightened.variant == ContractVariant.TIGHTENED
        assert "[RETRY HINT]" in instruction
        assert "[FINAL RETRY]" not in instruction
        assert list(tightened.mandatory_slots) == list(contract.mandatory_slots)
        # Base contract untouched
        assert "[RETRY HINT]" not in contract.mandatory_slots[SlotName.NEW_REVEAL].generation_instruction

    def test_third_attempt_lists_required_and_forbidden_words(self, contract):
        from models.contract import SlotName

        instruction = contract.tightened(3).mandatory_slots[SlotName.NEW_REVEAL].generation_instruction

        assert "[FINAL RETRY] Use these words: discover, evidence" in instruction
        assert "Do NOT use: perhaps, maybe" in instruction

    def test_relaxed_softens_tone_and_keeps_minimum(self, contract):
        from models.contract import RELAXED_MODE_NOTE, ContractVariant, SlotName

        relaxed = contract.relaxed()
        spec = relaxed.mandatory_slots[SlotName.NEW_REVEAL]

        assert relaxed.variant == ContractVariant.RELAXED
        assert spec.generation_instruction.startswith("[SUGGESTED]")
        assert "[MANDATORY]" not in spec.generation_instruction
        assert "must" not in spec.generation_instruction.lower()
        assert "should" in spec.generation_instruction
        assert spec.generation_instruction.endswith(RELAXED_MODE_NOTE)
        assert spec.minimum_length == 80
        assert list(relaxed.mandatory_slots) == [SlotName.NEW_REVEAL]

    def test_relaxed_drops_zero_tolerance_marker(self):
        from models.contract import Contract, SlotName, SlotSpec

        contract = Contract(
            episode_index=4,
            mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("[ZERO TOLERANCE] You MUST reveal it.", 10)},
        )
        instruction = contract.relaxed().mandatory_slots[SlotName.NEW_REVEAL].generation_instruction

        assert "[ZERO TOLERANCE]" not in instruction
        assert instruction.startswith("You SHOULD reveal it.")

    def test_relaxed_length_factor_is_a_policy_knob(self, contract):
        from models.contract import Contract, SlotName, SlotSpec

        assert contract.relaxed(0.5).mandatory_slots[SlotName.NEW_REVEAL].minimum_length == 40

        tiny = Contract(episode_index=1, mandatory_slots={SlotName.NEW_REVEAL: SlotSpec("x", 1)})
        assert tiny.relaxed(0.1).mandatory_slots[SlotName.NEW_REVEAL].minimum_length == 1

    def test_to_dict(self, contract):
        data = contract.to_dict()
        assert data["variant"] == "strict"
        assert data["mandatory"]["NEW_REVEAL"]["min_length"] == 80
        assert data["optional"] == {}


class TestNarrativeContext:

    def test_prior_summaries_cover_last_two_episodes(self):
        from models.narrative_context import NarrativeContext

        project = make_project(episode_summaries={"1": "one", "2": "two", "3": "three"})
        context = NarrativeContext.from_project(project, 4)

        assert context.prior_summaries == ("EP2: two", "EP3: three")
        assert context.episode_index == 4
        assert context.characters[0].name == "Lin"

    def test_vocabulary_overrides(self):
        from models.narrative_context import NarrativeContext

        project = make_project(required_vocabulary=["proof"], forbidden_vocabulary=["vague"])
        context = NarrativeContext.from_project(project, 1)

        assert context.required_vocabulary == ("proof",)
        assert context.forbidden_vocabulary == ("vague",)

    def test_missing_outline_raises(self):
        from models.narrative_context import NarrativeContext

        with pytest.raises(KeyError):
            NarrativeContext.from_project(make_project(total=2), 5)

    def test_provider_reads_project_repo(self):
        from models.narrative_context import StoredNarrativeContextProvider
        from runtime.persistence.memory_store import MemoryStore
        from runtime.persistence.repositories import ProjectRepo

        repo = ProjectRepo(MemoryStore())
        repo.save("proj-1", make_project())
        provider = StoredNarrativeContextProvider(repo)

        assert provider.get("proj-1", 2).outline.summary == "Episode 2: Lin digs deeper"
        with pytest.raises(KeyError):
            provider.get("missing", 1)
