"""DynamoDB adapter behind the production entity store (client setup, retries, table wrapper)."""
