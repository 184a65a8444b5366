"""Candidate value pools the synthesis engine draws from."""

BUCKET_POOL = [
    "data-bucket", "backup-bucket", "logs-bucket", "temp-bucket",
    "archive-bucket", "broken-shard-bucket", "slow-sync-bucket",
    "production-bucket", "staging-bucket", "test-bucket",
]

OBJECT_PATH_POOL = [
    "file.pdf", "image.jpg", "data.json", "video.mp4",
    "document.docx", "archive.zip", "log.txt", "backup.tar.gz",
    "path/to/file.txt", "uploads/2024/01/image.png",
    "legacy/old-file.dat", "temp/data.bin",
]

HOST_POOL = [
    "s3.example.com", "s3-gw.production.local",
    "storage.company.com", "object-store.internal",
]

IP_POOL = [
    "192.168.1.100", "10.0.0.50", "172.16.0.25", "10.178.152.209",
    "192.168.1.200", "10.0.0.75", "172.16.0.100", "192.168.1.150",
]

USER_POOL_SIZE = 20
USER_ID_BYTES = 32
