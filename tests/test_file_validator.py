import io
import zipfile

from quoteflow.file_validator import (
    DOCX_MIME,
    detect_mime_type,
    validate_document_file,
    validate_file_name,
    validate_image_file,
)

PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
    b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde"
    + b"\x00" * 32
)
JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 32
GIF = b"GIF89a\x01\x00\x01\x00\x80\x00\x00" + b"\x00" * 32
PDF = b"%PDF-1.7\n" + b"\x00" * 32


def zip_bytes(*names):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name in names:
            archive.writestr(name, "<xml/>")
    return buffer.getvalue()


def test_accepts_png_with_matching_type():
    result = validate_image_file(PNG, "card.png", "image/png")
    assert result.is_valid
    assert result.detected_mime_type == "image/png"


def test_jpg_alias_is_accepted_for_jpeg_content():
    assert validate_image_file(JPEG, "card.jpg", "image/jpg").is_valid


def test_rejects_content_that_does_not_match_declared_type():
    result = validate_image_file(PDF, "card.png", "image/png")
    assert not result.is_valid
    assert "does not match" in result.error


def test_rejects_executable_disguised_as_image():
    result = validate_image_file(b"MZ\x90\x00" + b"\x00" * 32, "photo.png", "image/png")
    assert not result.is_valid
    assert result.error == "Dangerous file type detected"


def test_rejects_oversized_and_empty_files():
    big = validate_image_file(PNG + b"\x00" * (10 * 1024 * 1024), "big.png", "image/png")
    assert not big.is_valid
    assert "10MB" in big.error
    assert validate_image_file(b"", "empty.png", "image/png").error == "Empty file is not allowed"
    assert validate_image_file(None, "none.png", "image/png").error == "No file provided"


def test_rejects_disallowed_declared_type():
    result = validate_image_file(PDF, "doc.pdf", "application/pdf")
    assert result.error == "File type 'application/pdf' is not allowed"


def test_docx_detected_from_zip_container_and_extension():
    content = zip_bytes("word/document.xml")
    assert validate_document_file(content, "contract.docx", DOCX_MIME).is_valid
    assert not detect_mime_type(zip_bytes("notes.txt"), "archive.zip").is_valid


def test_detects_common_image_types():
    assert detect_mime_type(PNG).detected_mime_type == "image/png"
    assert detect_mime_type(JPEG).detected_mime_type == "image/jpeg"
    assert detect_mime_type(GIF).detected_mime_type == "image/gif"


def test_rejects_unknown_content():
    result = detect_mime_type(b"just some plain text, not a document\n" * 4)
    assert not result.is_valid
    assert result.error == "Unknown or unsupported file type"


def test_file_name_rules():
    assert validate_file_name("報價單.pdf").is_valid
    assert not validate_file_name("").is_valid
    assert not validate_file_name(".env").is_valid
    assert not validate_file_name("~$draft.docx").is_valid
    assert not validate_file_name("invoice.exe.pdf").is_valid
    assert not validate_file_name('bad"name.pdf').is_valid
    # directory parts are ignored
    assert validate_file_name("C:\\uploads\\scan.png").is_valid


def test_webp_requires_marker_at_offset_eight():
    webp = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 16
    wav = b"RIFF\x00\x00\x00\x00WAVEfmt " + b"\x00" * 16
    assert detect_mime_type(webp).detected_mime_type == "image/webp"
    assert not detect_mime_type(wav).is_valid
