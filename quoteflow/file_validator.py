"""
Upload validation by file name, size, declared MIME type and magic bytes

Uploads are identified with libmagic so a renamed executable or a mislabeled
document is rejected even when the declared type is allowed.
"""

import logging
import re
from typing import NamedTuple, Optional

import magic

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

ALLOWED_IMAGE_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

ALLOWED_DOCUMENT_TYPES = [
    "application/pdf",
    "application/msword",
    DOCX_MIME,
    "application/vnd.ms-excel",
    XLSX_MIME,
]

MAGIC_BUFFER_SIZE = 2048

ZIP_MIME_TYPES = {"application/zip", "application/x-zip-compressed"}
ZIP_EXTENSION_TYPES = {"docx": DOCX_MIME, "xlsx": XLSX_MIME, "pptx": PPTX_MIME}
OLE_MIME_TYPES = {"application/x-ole-storage", "application/CDFV2", "application/vnd.ms-office"}
OLE_EXTENSION_TYPES = {"doc": "application/msword", "xls": "application/vnd.ms-excel"}

KNOWN_TYPES = set(ALLOWED_IMAGE_TYPES) | set(ALLOWED_DOCUMENT_TYPES) | {PPTX_MIME}

DANGEROUS_MIME_TYPES = {
    "application/x-dosexec",
    "application/x-executable",
    "application/x-sharedlib",
    "application/x-mach-binary",
    "application/java-archive",
    "text/x-shellscript",
}

DANGEROUS_SIGNATURES = [
    b"MZ",  # PE/EXE/DLL
    b"\x7fELF",
    b"\xfe\xed\xfa\xce",  # Mach-O 32-bit
    b"\xfe\xed\xfa\xcf",  # Mach-O 64-bit
    b"\xca\xfe\xba\xbe",  # Java class
    b"#!",  # Shebang scripts
    b"\x1f\x8b",  # gzip
    b"BZh",  # bzip2
]

DANGEROUS_EXTENSIONS = {"exe", "bat", "cmd", "scr", "com", "pif", "vbs", "js", "jar"}
DANGEROUS_NAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')

# Declared types that may legitimately carry content detected as another type
MIME_ALIASES: dict[str, set[str]] = {
    "image/jpeg": {"image/jpg"},
    DOCX_MIME: {"application/msword"},
    XLSX_MIME: {"application/vnd.ms-excel"},
    "application/msword": {"application/vnd.ms-excel"},
}


class FileValidationResult(NamedTuple):
    is_valid: bool
    error: Optional[str] = None
    detected_mime_type: Optional[str] = None


def validate_file_name(file_name: Optional[str]) -> FileValidationResult:
    clean_name = re.sub(r"^.*[\\/]", "", file_name or "")

    if not clean_name.strip():
        return FileValidationResult(False, "Invalid file name")

    if DANGEROUS_NAME_CHARS.search(clean_name):
        return FileValidationResult(False, "File name contains dangerous characters")

    if clean_name.startswith(".") or clean_name.lower().startswith("~$"):
        return FileValidationResult(False, "Hidden or system files are not allowed")

    parts = clean_name.split(".")
    if len(parts) > 2 and any(ext.lower() in DANGEROUS_EXTENSIONS for ext in parts[1:]):
        return FileValidationResult(False, "File with dangerous extension detected")

    return FileValidationResult(True)


def detect_mime_type(content: bytes, file_name: str = "") -> FileValidationResult:
    """Identify content with libmagic, refusing executables and unknown types"""
    head = content[:16]
    if any(head.startswith(signature) for signature in DANGEROUS_SIGNATURES):
        return FileValidationResult(False, "Dangerous file type detected")

    try:
        mime_type = magic.from_buffer(content[:MAGIC_BUFFER_SIZE], mime=True)
    except magic.MagicException as e:
        logger.error(f"❌ MIME detection failed for {file_name or 'upload'}: {e}")
        return FileValidationResult(False, "Unknown or unsupported file type")

    if mime_type in DANGEROUS_MIME_TYPES:
        return FileValidationResult(False, "Dangerous file type detected")

    # container formats are told apart by extension
    extension = file_name.lower().rsplit(".", 1)[-1] if "." in file_name else ""
    if mime_type in ZIP_MIME_TYPES:
        mime_type = ZIP_EXTENSION_TYPES.get(extension)
        if not mime_type:
            return FileValidationResult(False, "Unknown ZIP-based file type")
    elif mime_type in OLE_MIME_TYPES:
        mime_type = OLE_EXTENSION_TYPES.get(extension, "application/msword")

    if mime_type not in KNOWN_TYPES:
        return FileValidationResult(False, "Unknown or unsupported file type")
    return FileValidationResult(True, detected_mime_type=mime_type)


def _types_match(detected: str, declared: str) -> bool:
    if detected == declared:
        return True
    if declared in MIME_ALIASES.get(detected, set()):
        return True
    return detected in MIME_ALIASES.get(declared, set())


def validate_file(
    content: Optional[bytes],
    file_name: str,
    declared_mime_type: str,
    allowed_types: list[str],
    max_size: int = MAX_FILE_SIZE,
) -> FileValidationResult:
    """
    Validate an upload.

    Checks, in order: presence, file name, size, emptiness, declared type,
    magic bytes, and agreement between declared and detected types.
    """
    if content is None:
        return FileValidationResult(False, "No file provided")

    name_result = validate_file_name(file_name)
    if not name_result.is_valid:
        return name_result

    if len(content) > max_size:
        return FileValidationResult(False, f"File size exceeds {round(max_size / 1024 / 1024)}MB limit")

    if len(content) == 0:
        return FileValidationResult(False, "Empty file is not allowed")

    if declared_mime_type not in allowed_types:
        return FileValidationResult(False, f"File type '{declared_mime_type}' is not allowed")

    detected = detect_mime_type(content, file_name)
    if not detected.is_valid:
        logger.warning(f"🚫 Upload rejected ({file_name}): {detected.error}")
        return detected

    if not _types_match(detected.detected_mime_type, declared_mime_type):
        return FileValidationResult(
            False,
            "File content does not match declared type. "
            f"Expected: {declared_mime_type}, Detected: {detected.detected_mime_type}",
        )

    return FileValidationResult(True, detected_mime_type=detected.detected_mime_type)


def validate_image_file(content: Optional[bytes], file_name: str, declared_mime_type: str) -> FileValidationResult:
    return validate_file(content, file_name, declared_mime_type, ALLOWED_IMAGE_TYPES)


def validate_document_file(content: Optional[bytes], file_name: str, declared_mime_type: str) -> FileValidationResult:
    return validate_file(content, file_name, declared_mime_type, ALLOWED_DOCUMENT_TYPES)
