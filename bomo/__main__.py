import uvicorn

from bomo.config import settings


def main() -> None:
    uvicorn.run("bomo.main:app", host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    main()
