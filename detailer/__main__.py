import uvicorn

from detailer.config import settings

if __name__ == "__main__":
    uvicorn.run("detailer.main:app", host=settings.host, port=settings.port)
