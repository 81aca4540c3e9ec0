import asyncio

import pytest

from ragdesk.core.exceptions import NoExtractableContent, UnsupportedFileType
from ragdesk.core.config import settings
from ragdesk.services.llm.vision import GeminiVisionProvider
from ragdesk.services.rag.extractor import ExtractionSource, ExtractorRegistry
from tests.fakes import (
    DOCX,
    PDF,
    PNG,
    TXT,
    XLSX,
    FakeGenaiClient,
    make_blank_pdf,
    make_docx,
    make_pdf,
    make_xlsx,
)


def extract(registry, content, mime_type, file_name="file"):
    source = ExtractionSource("file:///unused", file_name, mime_type, content=content)
    return asyncio.run(registry.extract(source))


@pytest.fixture
def registry():
    return ExtractorRegistry()


def test_text_file_is_one_unit(registry):
    units = extract(registry, "Plain text body.\nSecond line.".encode("utf-8"), TXT)

    assert len(units) == 1
    assert units[0].text == "Plain text body.\nSecond line."
    assert units[0].page_label is None


def test_mime_parameters_are_ignored(registry):
    units = extract(registry, b"charset aware", "Text/Plain; charset=utf-8")
    assert units[0].text == "charset aware"


def test_pdf_yields_one_unit_per_page_in_order(registry):
    content = make_pdf(["Marker ALPHA on page one.", "Marker BRAVO on page two.", "Marker CHARLIE on page three."])

    units = extract(registry, content, PDF)

    assert [unit.page_label for unit in units] == ["1", "2", "3"]
    assert "ALPHA" in units[0].text
    assert "BRAVO" in units[1].text
    assert "CHARLIE" in units[2].text


def test_scanned_pdf_is_rejected_with_guidance(registry):
    with pytest.raises(NoExtractableContent) as exc_info:
        extract(registry, make_blank_pdf(), PDF)

    assert "scanned" in exc_info.value.message
    assert "images" in exc_info.value.message


def test_docx_includes_paragraphs_and_tables(registry):
    content = make_docx(["Quarterly report.", "Revenue grew."], table_rows=[["Region", "Sales"], ["North", "42"]])

    units = extract(registry, content, DOCX)

    assert len(units) == 1
    assert "Quarterly report." in units[0].text
    assert "Revenue grew." in units[0].text
    assert "North\t42" in units[0].text


def test_spreadsheet_yields_csv_per_non_empty_sheet(registry):
    content = make_xlsx({
        "Staff": [["Name", "Role"], ["Ada", "Engineer"]],
        "Empty": [],
        "Budget": [["Item", "Cost"], ["Laptops", "1200"]],
    })

    units = extract(registry, content, XLSX)

    assert [unit.page_label for unit in units] == ["Staff", "Budget"]
    assert "Ada,Engineer" in units[0].text
    assert "Laptops,1200" in units[1].text


def test_empty_text_file_has_no_extractable_content(registry):
    with pytest.raises(NoExtractableContent):
        extract(registry, b"   \n ", TXT)


def test_unsupported_mime_type(registry):
    assert not registry.is_supported("application/zip")
    with pytest.raises(UnsupportedFileType) as exc_info:
        extract(registry, b"PK", "application/zip")

    assert "application/zip" in exc_info.value.message


def test_images_need_a_vision_provider(registry):
    assert not registry.is_supported(PNG)
    assert ".png" not in registry.supported_extensions()


def test_image_is_described_by_vision_model(tmp_path):
    image = tmp_path / "chart.png"
    image.write_bytes(b"\x89PNG fake image bytes")
    genai = FakeGenaiClient(image_description="A line chart showing revenue by quarter.")
    registry = ExtractorRegistry(GeminiVisionProvider(client=genai, settings=settings))

    source = ExtractionSource(image.as_uri(), "chart.png", PNG)
    units = asyncio.run(registry.extract(source))

    assert registry.is_generative(PNG)
    assert units[0].text == "A line chart showing revenue by quarter."
    assert len(genai.generate_calls) == 1
    prompt = genai.generate_calls[0][1]
    assert "chart.png" in prompt


def test_blank_image_description_fails(tmp_path):
    image = tmp_path / "blank.png"
    image.write_bytes(b"\x89PNG")
    registry = ExtractorRegistry(GeminiVisionProvider(client=FakeGenaiClient(image_description="  "), settings=settings))

    with pytest.raises(NoExtractableContent):
        asyncio.run(registry.extract(ExtractionSource(image.as_uri(), "blank.png", PNG)))


def test_image_bytes_are_sent_inline_instead_of_the_url(tmp_path):
    image = tmp_path / "scan.png"
    image.write_bytes(b"\x89PNG private scan")
    genai = FakeGenaiClient()
    provider = GeminiVisionProvider(client=genai, settings=settings)

    asyncio.run(provider.describe_image(image.as_uri(), "scan.png", PNG))

    contents = genai.generate_calls[0]
    assert contents[0].inline_data.data == b"\x89PNG private scan"
    assert contents[0].inline_data.mime_type == PNG
    assert not any(image.as_uri() in item for item in contents if isinstance(item, str))


def test_supported_extensions(registry):
    assert registry.supported_extensions() == [".docx", ".pdf", ".txt", ".xls", ".xlsx"]
