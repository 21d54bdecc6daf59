"""Four-stage generation pipeline: facts → hypotheses → prd → spec."""
