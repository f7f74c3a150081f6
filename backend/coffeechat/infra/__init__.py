"""Infrastructure adapters: asyncpg pool, PostgreSQL record store and schema migrations."""
