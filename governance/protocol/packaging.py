"""Deterministic WordprocessingML (.docx) packaging.

Parts are written in a fixed order with a fixed timestamp and fixed
permissions, so identical parts always give an identical archive.
"""

import io
import zipfile

DOCX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)

# Earliest timestamp a zip entry can carry
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def build_package(parts: list[tuple[str, bytes]]) -> bytes:
    """Zip parts in the given order.

    Args:
        parts: (part name, content) pairs; the order is kept

    Returns:
        The archive bytes
    """
    names = [name for name, _ in parts]
    if len(names) != len(set(names)):
        msg = "Duplicate part names in package"
        raise ValueError(msg)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in parts:
            info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            info.create_system = 0
            archive.writestr(info, content)
    return buffer.getvalue()
