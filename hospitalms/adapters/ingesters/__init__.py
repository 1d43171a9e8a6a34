"""Ingestion adapters for hospitalms.

Only CSV is supported; ``CSVIngester.read_source`` rejects anything else
with the same error the import front end shows for a wrong file type.
"""

from hospitalms.adapters.ingesters.csv_ingester import CSVIngester, tokenize

__all__ = ["CSVIngester", "tokenize"]
