"""Chunked upload client with parallel workers, resume and checksum verification."""
import hashlib
import os
import sys
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

import requests

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080")
CHUNK_SIZE = 5 * 1024 * 1024  # 5MB
MAX_WORKERS = 4  # Parallel upload threads


class ChunkUploader:
    """Client for uploading large files as independently sent chunks."""

    def __init__(
        self,
        api_url: str = API_BASE_URL,
        chunk_size: int = CHUNK_SIZE,
        max_workers: int = MAX_WORKERS,
        http=None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.api_url = api_url.rstrip("/")
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        # Anything with requests' post/get interface (a Session, or a test client)
        self.http = http or requests.Session()

    @staticmethod
    def calculate_file_hash(file_path: str) -> str:
        """SHA256 of the entire file."""
        hash_obj = hashlib.sha256()
        with open(file_path, "rb") as f:
            while chunk := f.read(65536):  # 64KB chunks
                hash_obj.update(chunk)
        return hash_obj.hexdigest()

    def total_chunks(self, file_size: int) -> int:
        # An empty file still travels as one (empty) chunk
        return max(1, (file_size + self.chunk_size - 1) // self.chunk_size)

    def get_missing(self, session_id: str, filename: str, total_chunks: int) -> list[int]:
        """Ask the server which chunks it does not have yet."""
        response = self.http.get(
            f"{self.api_url}/status",
            params={"sessionID": session_id, "filename": filename, "expectedTotal": total_chunks},
        )
        response.raise_for_status()
        return response.json()["missing"]

    def upload_chunk(self, session_id: str, filename: str, index: int, total: int, data: bytes) -> bool:
        """Upload a single chunk with its MD5 checksum."""
        try:
            response = self.http.post(
                f"{self.api_url}/upload",
                data={
                    "sessionID": session_id,
                    "filename": filename,
                    "chunkIndex": str(index),
                    "totalChunks": str(total),
                },
                files={"file": (f"{filename}.part{index}", data, "application/octet-stream")},
                headers={"X-Chunk-MD5": hashlib.md5(data).hexdigest()},
            )
            response.raise_for_status()
            return True
        except Exception as e:
            print(f"✗ Failed to upload chunk {index}: {e}")
            return False

    def merge(self, session_id: str, filename: str, total_chunks: int, file_hash: Optional[str] = None) -> dict:
        """Ask the server to assemble the chunks."""
        data = {"sessionID": session_id, "filename": filename, "expectedTotal": str(total_chunks)}
        if file_hash:
            data["sha256"] = file_hash
        response = self.http.post(f"{self.api_url}/merge", data=data)
        response.raise_for_status()
        return response.json()

    def _upload_from_file(self, file_path: Path, session_id: str, filename: str, index: int, total: int) -> bool:
        # Read inside the worker so only max_workers chunks are in memory at once
        with open(file_path, "rb") as f:
            f.seek(index * self.chunk_size)
            data = f.read(self.chunk_size)
        return self.upload_chunk(session_id, filename, index, total, data)

    def upload_file(self, file_path: str, session_id: Optional[str] = None) -> Optional[dict]:
        """
        Upload a file chunk by chunk, then merge it.

        Pass the session_id of an interrupted upload to resume it: chunks
        the server already holds are skipped. Returns the merge result, or
        None when some chunks failed (the upload can be resumed).
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        session_id = session_id or uuid.uuid4().hex
        filename = file_path.name
        file_size = file_path.stat().st_size
        total = self.total_chunks(file_size)

        print(f"Uploading {filename} ({file_size / (1024*1024):.2f} MB) as session {session_id}")
        file_hash = self.calculate_file_hash(str(file_path))
        print(f"  File SHA256: {file_hash[:16]}...")

        missing = self.get_missing(session_id, filename, total)
        if len(missing) < total:
            print(f"Resuming: {total - len(missing)}/{total} chunks already on the server")

        print(f"\nUploading {len(missing)} chunks using {self.max_workers} parallel workers...")
        start_time = time.time()
        failed = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._upload_from_file, file_path, session_id, filename, index, total): index
                for index in missing
            }
            done = total - len(missing)
            for future in as_completed(futures):
                index = futures[future]
                if future.result():
                    done += 1
                    print(f"  ✓ Chunk {index + 1}/{total} uploaded ({done / total * 100:.1f}%)")
                else:
                    failed.append(index)

        if failed:
            print(f"\n⚠ Upload incomplete: {len(failed)} chunks failed ({sorted(failed)})")
            print(f"  Resume with: upload-chunks {file_path} --session {session_id}")
            return None

        result = self.merge(session_id, filename, total, file_hash)
        upload_time = max(time.time() - start_time, 1e-6)

        print(f"\n✓ Upload completed successfully!")
        print(f"  Stored as: {result['key']}")
        print(f"  Time: {upload_time:.2f} seconds")
        print(f"  Speed: {file_size / upload_time / (1024*1024):.2f} MB/s")
        return result


def main():
    """CLI for chunked uploader."""
    args = sys.argv[1:]
    if not args or args[0].startswith("-"):
        print("Usage:")
        print("  New upload:    upload-chunks <file_path> [--url URL]")
        print("  Resume upload: upload-chunks <file_path> --session <session_id> [--url URL]")
        sys.exit(1)

    file_path = args[0]
    session_id = None
    api_url = API_BASE_URL

    if "--session" in args:
        idx = args.index("--session")
        if len(args) > idx + 1:
            session_id = args[idx + 1]
    if "--url" in args:
        idx = args.index("--url")
        if len(args) > idx + 1:
            api_url = args[idx + 1]

    uploader = ChunkUploader(api_url=api_url)

    try:
        result = uploader.upload_file(file_path, session_id=session_id)
    except Exception as e:
        print(f"\n✗ Upload failed: {e}")
        sys.exit(1)
    if result is None:
        sys.exit(2)


if __name__ == "__main__":
    main()
