"""flowgate: gated GTD state machine and Now-list ranking."""
