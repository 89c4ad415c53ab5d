from arbiter.config import get_settings
from arbiter.repository import SqlRepository, make_engine


def init_db():
    settings = get_settings()
    print(f"Creating tables at {settings.database_url}...")
    SqlRepository(make_engine(settings.database_url)).create_tables()
    print("Done.")


if __name__ == "__main__":
    init_db()
