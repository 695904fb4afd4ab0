"""Run the Hive backend with ``python -m hive``."""
import uvicorn

from hive.database.config.config import settings


def main() -> None:
    uvicorn.run("hive.main:create_app", factory=True, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
