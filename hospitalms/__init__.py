"""Hospital management: CSV bulk import, document API and session store."""

__version__ = "1.0.0"
