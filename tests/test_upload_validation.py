from resume_screener.services.upload_validation import validate_batch, validate_file

MB = 1024 * 1024
ACCEPTED = [".pdf", ".doc", ".docx", ".txt"]


def test_accepts_allowed_file():
    assert validate_file("cv.PDF", 2 * MB, ACCEPTED, 10) is None


def test_rejects_oversized_file_with_size_message():
    error = validate_file("big.pdf", 11 * MB, ACCEPTED, 10)
    assert error == "File big.pdf is too large (max 10MB)"


def test_rejects_unknown_extension_with_type_message():
    assert validate_file("photo.png", 100, ACCEPTED, 10) == "File type .png is not supported"
    assert validate_file("README", 100, ACCEPTED, 10) == "File type (none) is not supported"


def test_batch_keeps_valid_files_when_others_fail():
    report = validate_batch(
        [
            ("a.txt", 10, "a"),
            ("huge.pdf", 20 * MB, "huge"),
            ("b.docx", 10, "b"),
            ("virus.exe", 10, "virus"),
        ],
        accepted_types=ACCEPTED,
        max_size_mb=10,
    )
    assert report.accepted == ["a", "b"]
    assert report.errors == [
        "File huge.pdf is too large (max 10MB)",
        "File type .exe is not supported",
    ]


def test_size_limit_is_configurable():
    assert validate_file("cv.txt", int(1.5 * MB), ACCEPTED, 1) is not None
    assert validate_file("cv.txt", int(1.5 * MB), ACCEPTED, 2) is None
