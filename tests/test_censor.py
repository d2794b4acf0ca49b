import io
import os
import shutil
import tempfile
import unittest

from pdfrw import PdfReader, PdfWriter, PdfDict, IndirectPdfDict, PdfArray, PdfName, PdfString

import pdf_censor
from pdf_censor.censor import Finding, PdfCensor
from pdf_censor.engine import CharacterPosition


def make_font():
	return PdfDict(Type=PdfName.Font, Subtype=PdfName.Type1, BaseFont=PdfName.Helvetica,
		FirstChar=97, LastChar=122, Widths=PdfArray([500] * 26))


def make_pdf(*contents, **options):
	writer = PdfWriter()
	for content in contents:
		page = PdfDict(Type=PdfName.Page, MediaBox=PdfArray([0, 0, 612, 792]))
		page.Contents = IndirectPdfDict()
		page.Contents.stream = content
		if options.get("filter"):
			page.Contents.Filter = PdfName(options["filter"])
		page.Resources = PdfDict(Font=PdfDict(F1=make_font()))
		if options.get("annotations"):
			page.Annots = PdfArray([PdfDict(Type=PdfName.Annot, Subtype=PdfName.Link,
				Rect=PdfArray([0, 0, 10, 10]))])
		writer.addpage(page)

	if options.get("info"):
		writer.trailer.Info = IndirectPdfDict()
		for key, value in options["info"].items():
			writer.trailer.Info[PdfName(key)] = PdfString.encode(value)
	if options.get("xmp"):
		writer.trailer.Root.Metadata = IndirectPdfDict(Type=PdfName.Metadata, Subtype=PdfName.XML)
		writer.trailer.Root.Metadata.stream = options["xmp"]
	if options.get("outlines"):
		writer.trailer.Root.Outlines = IndirectPdfDict(Type=PdfName.Outlines, Count=0)
		writer.trailer.Root.PageMode = PdfName.UseOutlines

	output = io.BytesIO()
	writer.write(output)
	return output.getvalue()


XMP = ('<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
	'<rdf:Description xmlns:dc="http://purl.org/dc/elements/1.1/"><dc:title>Secret plans</dc:title>'
	'</rdf:Description></rdf:RDF></x:xmpmeta>')


class CensorFixture(object):
	# Censors an in-memory PDF and reads the result back in.
	def __init__(self, data, options):
		self.data = data
		self.options = options

	def __enter__(self):
		self.options.input_stream = io.BytesIO(self.data)
		self.options.output_stream = io.BytesIO()
		self.findings = pdf_censor.censor(self.options)
		return PdfReader(io.BytesIO(self.options.output_stream.getvalue()))

	def __exit__(self, exc_type, exc_val, exc_tb):
		return False


class CensorTest(unittest.TestCase):
	def test_text_ssns(self):
		options = pdf_censor.CensorOptions()
		options.expressions = [pdf_censor.TokenDef("ssn", r"\d{3}-\d{2}-\d{4}")]
		data = make_pdf("BT /F1 12 Tf (My SSN is 123-45-6789.) Tj 0 -14 Td (Call me) Tj ET")
		fixture = CensorFixture(data, options)
		with fixture as document:
			content = document.pages[0].Contents.stream
			self.assertNotIn("123-45-6789", content)
			self.assertIn("[(My SSN is ) 0 (.)] TJ", content)
			self.assertIn("0 -14 Td", content)
			self.assertIn("(Call me) Tj", content)
		self.assertEqual(fixture.findings, [Finding(1, "ssn", "123-45-6789")])

	def test_token_spanning_text_operators(self):
		options = pdf_censor.CensorOptions()
		options.expressions = [("word", "secret")]
		data = make_pdf("BT /F1 12 Tf (a sec) Tj [(re) -10 (t b)] TJ ET", "BT /F1 12 Tf (secret) Tj ET")
		fixture = CensorFixture(data, options)
		with fixture as document:
			first = document.pages[0].Contents.stream
			self.assertIn("[(a ) -1500] TJ", first)
			self.assertIn("[-1510 ( b)] TJ", first)
			# The ET follows the censored text and goes with it.
			self.assertEqual(document.pages[1].Contents.stream, "BT /F1 12 Tf ")
		self.assertEqual(fixture.findings, [Finding(1, "word", "secret"), Finding(2, "word", "secret")])

	def test_censors_everything_by_default(self):
		fixture = CensorFixture(make_pdf("BT /F1 12 Tf (ab) Tj ET"), pdf_censor.CensorOptions())
		with fixture as document:
			self.assertEqual(document.pages[0].Contents.stream, "BT /F1 12 Tf ")
		self.assertEqual([finding.text for finding in fixture.findings], ["a", "b"])
		self.assertEqual(set(finding.identifier for finding in fixture.findings), {"all"})

	def test_glyphs_without_text_are_censored(self):
		handler = PdfCensor(pdf_censor.CensorOptions())
		handler.begin_document(None)
		handler.begin_page(None, 1)
		glyphs = [CharacterPosition(0, 1, "", b"\x01", 500.0, None, "Tj", 0),
			CharacterPosition(1, 1, "a", b"a", 500.0, None, "Tj", 0)]
		handler.scan_text(glyphs)
		self.assertTrue(handler.should_censor(glyphs[0]))
		self.assertTrue(handler.should_censor(glyphs[1]))
		handler.end_document(None)

	def test_metadata(self):
		data = make_pdf("", info={"Title": "this is a test", "Author": "Someone", "Custom": "value"})
		with CensorFixture(data, pdf_censor.CensorOptions()) as document:
			self.assertEqual(document.Info.Title.to_unicode(), "Censored Title")
			self.assertEqual(document.Info.Author.to_unicode(), "Censored Author")
			self.assertEqual(document.Info.Producer.to_unicode(), "Censored Producer")
			self.assertTrue(document.Info.CreationDate.to_unicode().startswith("D:"))
			self.assertEqual(document.Info.Custom.to_unicode(), "value")

	def test_metadata_filters(self):
		options = pdf_censor.CensorOptions()
		options.metadata_filters = {
			"Title": [lambda value: value.replace("test", "sentinel")],
			"Subject": [lambda value: "ünïcode"],
			"DEFAULT": [lambda value: None],
		}
		data = make_pdf("", info={"Title": "this is a test", "Author": "Someone"})
		with CensorFixture(data, options) as document:
			self.assertEqual(document.Info.Title.to_unicode(), "this is a sentinel")
			self.assertEqual(document.Info.Subject.to_unicode(), "ünïcode")
			self.assertIsNone(document.Info.Author)

	def test_xmp_removed_by_default(self):
		with CensorFixture(make_pdf("", xmp=XMP), pdf_censor.CensorOptions()) as document:
			self.assertIsNone(document.Root.Metadata)

	def test_xmp_filters(self):
		options = pdf_censor.CensorOptions()

		def xmp_filter(root):
			for title in root.iter("{http://purl.org/dc/elements/1.1/}title"):
				title.text = "Nothing to see"
			return root
		options.xmp_filters = [xmp_filter]

		with CensorFixture(make_pdf("", xmp=XMP), options) as document:
			xmp = document.Root.Metadata.stream
			self.assertIn("Nothing to see", xmp)
			self.assertNotIn("Secret plans", xmp)

	def test_annotations_and_navigation(self):
		data = make_pdf("", annotations=True, outlines=True)
		with CensorFixture(data, pdf_censor.CensorOptions()) as document:
			self.assertIsNone(document.pages[0].Annots)
			self.assertIsNone(document.Root.Outlines)
			self.assertIsNone(document.Root.PageMode)

		options = pdf_censor.CensorOptions()
		options.remove_annotations = False
		options.remove_navigation = False
		with CensorFixture(data, options) as document:
			self.assertEqual(len(document.pages[0].Annots), 1)
			self.assertIsNotNone(document.Root.Outlines)


class CensorFilesTest(unittest.TestCase):
	def setUp(self):
		self.input_dir = tempfile.mkdtemp()
		self.output_dir = tempfile.mkdtemp()

	def tearDown(self):
		shutil.rmtree(self.input_dir)
		shutil.rmtree(self.output_dir)

	def write_input(self, name, data):
		path = os.path.join(self.input_dir, name)
		with open(path, "wb") as f:
			f.write(data)
		return path

	def test_failed_documents_do_not_stop_the_batch(self):
		garbage = self.write_input("garbage.pdf", b"this is not a PDF")
		lzw = self.write_input("lzw.pdf", make_pdf("not really LZW data", filter="LZWDecode"))
		good = self.write_input("good.pdf", make_pdf("BT /F1 12 Tf (abc) Tj ET"))

		options = pdf_censor.CensorOptions()
		options.expressions = [("b", "b")]
		with self.assertLogs("pdf_censor.censor", level="ERROR") as logs:
			results = pdf_censor.censor_files([garbage, lzw, good], self.output_dir, options)
		self.assertEqual(len(logs.records), 2)

		self.assertIsNone(results[garbage])
		self.assertIsNone(results[lzw])
		self.assertEqual(results[good], [Finding(1, "b", "b")])
		self.assertEqual(sorted(os.listdir(self.output_dir)), ["good.pdf"])

		with open(os.path.join(self.output_dir, "good.pdf"), "rb") as f:
			document = PdfReader(io.BytesIO(f.read()))
		self.assertEqual(document.pages[0].Contents.stream, "BT /F1 12 Tf [(a) -500 (c)] TJ\nET")

		# The options passed in are left alone.
		self.assertNotIn("input_stream", vars(options))
		self.assertNotIn("output_stream", vars(options))

	def test_malformed_metadata_does_not_stop_the_batch(self):
		bad_xmp = self.write_input("bad_xmp.pdf", make_pdf("", xmp="<x:xmpmeta><unclosed"))
		good = self.write_input("good.pdf", make_pdf("BT /F1 12 Tf (abc) Tj ET"))

		with self.assertLogs("pdf_censor.censor", level="ERROR") as logs:
			results = pdf_censor.censor_files([bad_xmp, good], self.output_dir, pdf_censor.CensorOptions())
		self.assertEqual(len(logs.records), 1)
		self.assertIsNone(results[bad_xmp])
		self.assertEqual([finding.text for finding in results[good]], ["a", "b", "c"])
		self.assertEqual(sorted(os.listdir(self.output_dir)), ["good.pdf"])

	def test_refuses_to_overwrite_the_input(self):
		good = self.write_input("good.pdf", make_pdf(""))
		with self.assertLogs("pdf_censor.censor", level="ERROR"):
			results = pdf_censor.censor_files([good], self.input_dir, pdf_censor.CensorOptions())
		self.assertIsNone(results[good])
