import base64
import zipfile
from io import BytesIO

from docx import Document

from manuscript_builder.assembler import AssemblyOptions, ManuscriptAssembler, RenderMode
from manuscript_builder.docx_writer import build_docx, build_manuscript_docx
from manuscript_builder.figures import FigureTableNumbering
from manuscript_builder.models import FigureItem, FigureKind
from manuscript_builder.project import load_project

# 1x1 transparent PNG
PNG_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def _paragraphs(data: bytes):
    return [paragraph.text for paragraph in Document(BytesIO(data)).paragraphs]


def test_tokens_become_labels_and_embed_items_once():
    side_table = {
        "fig:plot": FigureItem(id="plot", caption="Conversion vs time", image_data=PNG_PIXEL, image_type="png"),
        "tab:runs": FigureItem(id="runs", kind=FigureKind.TABLE, caption="Runs", rows=[["Run", "Yield"], ["1", "0.9"]]),
    }
    numbering = FigureTableNumbering(figures={"plot": 1}, tables={"runs": 1})
    text = "# Results\n\nSee {fig:plot} and {tab:runs}.\nAgain {fig:plot}."

    data = build_docx(text, side_table, numbering)

    document = Document(BytesIO(data))
    texts = [paragraph.text for paragraph in document.paragraphs]
    assert texts[0] == "Results"
    assert document.paragraphs[0].style.name == "Heading 1"
    assert "See Figure 1 and Table 1." in texts
    assert "Again Figure 1." in texts
    assert "Figure 1. Conversion vs time" in texts
    assert "Table 1. Runs" in texts
    assert len(document.inline_shapes) == 1
    assert len(document.tables) == 1
    assert document.tables[0].cell(1, 1).text == "0.9"
    with zipfile.ZipFile(BytesIO(data)) as archive:
        assert any(name.startswith("word/media/") for name in archive.namelist())


def test_missing_items_are_flagged():
    data = build_docx("Broken {fig:ghost} and {tab:ghost}.", {}, FigureTableNumbering())

    texts = _paragraphs(data)
    assert "Broken Figure ? and Table ?." in texts
    assert "[Missing figure: ghost]" in texts
    assert "[Missing table: ghost]" in texts


def test_unreadable_image_is_flagged_as_missing():
    side_table = {"fig:bad": FigureItem(id="bad", caption="Bad", image_data=b"not an image", image_type="png")}

    data = build_docx("See {fig:bad}.", side_table, FigureTableNumbering(figures={"bad": 1}))

    document = Document(BytesIO(data))
    assert "[Missing figure: bad]" in [paragraph.text for paragraph in document.paragraphs]
    assert len(document.inline_shapes) == 0


def test_manuscript_export_from_structured_assembly(sample_project_data):
    project = load_project(sample_project_data)
    manuscript = ManuscriptAssembler(project).assemble(AssemblyOptions(mode=RenderMode.STRUCTURED_EXPORT))

    document = Document(BytesIO(build_manuscript_docx(manuscript)))
    texts = [paragraph.text for paragraph in document.paragraphs]

    assert "Screening matters [1] as shown in Figure 1." in texts
    assert "[Missing figure: flow]" in texts
    assert "Table 1. Yields" in texts
    assert document.tables[0].cell(1, 1).text == "0.93"
