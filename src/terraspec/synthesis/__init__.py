"""Environment defaults, block synthesis, references and the synthesis session."""
