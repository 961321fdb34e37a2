import json
import os

import aiofiles


class StorageService:
    @staticmethod
    def store_path(data_dir: str, db_file: str) -> str:
        """Return the path of the JSON document store under data_dir."""
        return os.path.join(data_dir, db_file)

    @staticmethod
    def ensure_dir(path: str) -> None:
        """Create the parent directory of path if it is missing."""
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    @staticmethod
    async def read_json(path: str) -> dict | list:
        async with aiofiles.open(path) as f:
            return json.loads(await f.read())

    @staticmethod
    async def write_json(path: str, data: dict | list) -> None:
        """Write to a sibling temp file, then swap it in so readers never see half a document."""
        StorageService.ensure_dir(path)
        tmp_path = f"{path}.tmp"
        async with aiofiles.open(tmp_path, "w") as f:
            await f.write(json.dumps(data, indent=2))
        os.replace(tmp_path, path)
