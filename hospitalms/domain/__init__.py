"""Domain core: models, import pipeline rules and the session store."""
