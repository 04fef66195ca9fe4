"""
Stub text generator for local runs without a model.

Answers every slot-writer prompt with deterministic slot JSON long enough to
pass the default contract. Selected when USE_MOCK_GENERATOR=true.
"""
import json
import logging

from runtime.slot_generator import assigned_slot_names

logger = logging.getLogger(__name__)

_STUB_TEXT = {
    "NEW_REVEAL": (
        "[Scene 1] Archive room | Night\n"
        "She pulls the ledger from the locked drawer and finds the evidence on the spot: "
        "her own signature on the transfer she never made. She can now confirm who framed her."
    ),
    "CONFLICT_PROGRESS": (
        "[Scene 2] Boardroom | Day\n"
        "The board moves the vote forward by a week, cutting her time to prove it in half."
    ),
    "COST_PAID": (
        "[Scene 3] Street | Night\n"
        "To keep the ledger she gives up the only copy of her father's letter."
    ),
}


class StubTextGenerator:
    def __init__(self):
        self.calls = 0

    async def __call__(self, prompt: str) -> str:
        self.calls += 1
        names = assigned_slot_names(prompt) or ["NEW_REVEAL"]
        logger.info(f"[stub] Answering slots {names} (call {self.calls})")
        return json.dumps({name: _STUB_TEXT.get(name, "") for name in names})
