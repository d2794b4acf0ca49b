# Censors the text layer and the metadata of PDF documents.
#
# The glyphs of each page are run through a Tokenizer, one glyph at a time,
# with the glyph's index on the page as its payload. Every glyph that ends up
# in a recognized token is censored when the page is rewritten.

import copy
import io
import logging
import os
import sys
from collections import namedtuple
from datetime import datetime, timezone

import binascii
from xml.etree.ElementTree import ParseError

from pdfrw import PdfReader, PdfWriter
from pdfrw.errors import PdfParseError
from pdfrw.objects import PdfString, PdfName, PdfDict
from pdfrw.uncompress import uncompress as uncompress_streams

from .processor import PdfHandler, PdfProcessor
from .tokenizer import Tokenizer, TokenDef

log = logging.getLogger(__name__)

# pdfrw's xref table writer passes (unicode) strings to binascii.hexlify.
# Assume the string is Latin-1 encoded since that's what pdfrw assumes
# throughout.
original_hexlify = binascii.hexlify
binascii.hexlify = lambda x : original_hexlify(x if isinstance(x, bytes) else x.encode("latin-1"))


def censored_value(field):
	return lambda value : "Censored " + field

def processing_time(value):
	return datetime.now(timezone.utc)


class CensorOptions:
	"""Censoring and I/O options."""

	# Input/Output
	input_stream = sys.stdin.buffer # input byte stream containing the PDF to censor
	output_stream = sys.stdout.buffer # output byte stream to write the new, censored PDF to

	# The expressions are TokenDefs (or (identifier, pattern) tuples) for the
	# text to censor. The text of each page is tokenized with them and every
	# glyph that belongs to a token is censored.
	#
	# The glyphs of a page are visited in the order they are drawn, so a pattern
	# may span text operators. Spaces are often not drawn as glyphs but as
	# positioning, so patterns should treat spaces as optional.
	#
	# With no expressions at all, every glyph is censored.
	expressions = []

	# Metadata filters map names of entries in the PDF Document Information Dictionary
	# (e.g. "Title", "Author", "Subject", "Keywords", "Creator", "Producer", "CreationDate",
	# and "ModDate") to an array of functions to run on the values of those keys.
	#
	# Each function is given a str containing the current field value, or None if the
	# field is not present in the input PDF, as the function's first argument and it must
	# return either a string, a datetime.datetime value (CreationDate and ModDate should
	# be datetime.datetime values), or None to clear the field. The functions are run in
	# order, each given the previous function's return value.
	#
	# If a datetime.datetime is returned without timezone info (a "naive" datetime), then
	# it must be in UTC.
	#
	# Use "DEFAULT" as a key to apply functions to all metadata fields that have no specific
	# functions defined, and "ALL" to apply functions to all metadata fields after any
	# field-specific or DEFAULT functions are run.
	#
	# By default the descriptive fields are replaced with placeholders and both dates
	# are set to the time the document is censored.
	metadata_filters = {
		"Author": [censored_value("Author")],
		"Creator": [censored_value("Creator")],
		"Title": [censored_value("Title")],
		"Subject": [censored_value("Subject")],
		"Producer": [censored_value("Producer")],
		"Keywords": [censored_value("Keywords")],
		"CreationDate": [processing_time],
		"ModDate": [processing_time],
	}

	# The XMP metadata filters are functions that are passed any existing XMP data and
	# return new XMP metadata. The functions are called in order and each is passed the
	# result of the previous function. The functions are given an xml.etree.Element object,
	# or None, as their first argument and must return an object of the same type, or None.
	#
	# By default XMP metadata is removed.
	xmp_filters = [lambda xml : None]

	# This function controls how XML returned by xmp_filters is serialized. Replace this
	# function with any function that takes an xml.etree.Element object and returns a str.
	xmp_serializer = None

	# Also drop the instruction that follows censored text. It usually moves the
	# text position relative to the censored text (e.g. a Td).
	drop_trailing_operator = True

	# Remove the annotations (links, comments, form fields) of every page.
	remove_annotations = True

	# Remove the document outline (bookmarks) and page labels.
	remove_navigation = True


# A piece of text that was censored: the page it was on, the identifier of the
# expression that matched it and the matched text.
Finding = namedtuple("Finding", ["page", "identifier", "text"])


class PdfCensor(PdfHandler):
	def __init__(self, options):
		self.options = options
		self.findings = []
		self.censored = set()
		self.page_number = None
		self.tokenizer = None

	def begin_document(self, document):
		self.findings = []
		self.tokenizer = Tokenizer(self.options.expressions or [TokenDef("all", ".")])
		self.tokenizer.set_handler(self.on_token)

	def begin_page(self, page, page_number):
		self.page_number = page_number
		self.censored = set()

	def scan_text(self, characters):
		for character in characters:
			# A glyph without text (an empty ToUnicode mapping) still takes part,
			# as an unknown character.
			text = character.text or "?"
			self.tokenizer.input(text, [character.index] * len(text))
		# Tokens don't span pages.
		self.tokenizer.flush()

	def on_token(self, text, payload, token_def):
		if token_def is None:
			return
		log.debug("Found %s %r on page %d.", token_def.identifier, text, self.page_number)
		self.censored.update(payload)
		self.findings.append(Finding(self.page_number, token_def.identifier, text))

	def should_censor(self, position):
		return position.index in self.censored

	def end_page(self, page, page_number):
		if self.options.remove_annotations and page.Annots is not None:
			log.debug("Removing %d annotation(s) from page %d.", len(page.Annots), page_number)
			page.Annots = None

	def end_document(self, document):
		if self.tokenizer is not None:
			self.tokenizer.close()


def censor(options):
	# This is the function that performs censoring. Returns the list of
	# Findings.

	# Read the PDF.
	document = PdfReader(options.input_stream)

	# Modify its Document Information Dictionary metadata.
	update_metadata(document, options)

	# Modify its XMP metadata.
	update_xmp_metadata(document, options)

	# Rewrite the page content.
	handler = PdfCensor(options)
	PdfProcessor(handler, options.drop_trailing_operator).process(document)

	if options.remove_navigation:
		remove_navigation(document)

	# Write the PDF back out.
	writer = PdfWriter()
	writer.trailer = document
	writer.write(options.output_stream)

	return handler.findings


def censor_files(paths, output_dir, options):
	# Censors each file into output_dir under the same file name. A file that
	# can't be read or rewritten is logged and skipped, and no output is
	# written for it. Returns a dict mapping each path to its findings, or to
	# None if the file failed.
	results = { }
	for path in paths:
		output_path = os.path.join(output_dir, os.path.basename(path))
		if os.path.abspath(output_path) == os.path.abspath(path):
			log.error("Not censoring %s into itself.", path)
			results[path] = None
			continue

		file_options = copy.copy(options)
		output = io.BytesIO()
		try:
			with open(path, "rb") as f:
				file_options.input_stream = f
				file_options.output_stream = output
				findings = censor(file_options)
		except (IOError, ValueError, PdfParseError, ParseError) as e:
			log.error("Could not censor %s: %s", path, e)
			results[path] = None
			continue

		with open(output_path, "wb") as f:
			f.write(output.getvalue())
		log.info("Censored %s into %s (%d finding(s)).", path, output_path, len(findings))
		results[path] = findings
	return results


def update_metadata(trailer, options):
	# Update the PDF's Document Information Dictionary, which contains keys like
	# Title, Author, Subject, Keywords, Creator, Producer, CreationDate, and ModDate
	# (the latter two containing Date values, the rest strings).

	# Create the metadata dict if it doesn't exist, since the filters may add fields.
	if not trailer.Info:
		trailer.Info = PdfDict()

	# Get a list of all metadata fields that exist in the PDF plus any fields
	# that there are metadata filters for (since they may insert field values).
	keys = set(str(k)[1:] for k in trailer.Info.keys()) \
		 | set(k for k in options.metadata_filters.keys() if k not in ("DEFAULT", "ALL"))

	# Update each metadata field.
	for key in sorted(keys):
		# Get the functions to apply to this field. If nothing is defined for
		# this field, use the DEFAULT functions. Then the ALL functions.
		functions = options.metadata_filters.get(key)
		if functions is None:
			functions = options.metadata_filters.get("DEFAULT", [])
		functions = list(functions) + list(options.metadata_filters.get("ALL", []))
		if not functions:
			continue

		# Run the functions on any existing values.
		value = trailer.Info[PdfName(key)]
		for f in functions:
			# Before passing to the function, convert from a PdfString to a Python
			# string. pdfrw takes care of PDFDocEncoding and UTF-16BE strings.
			if isinstance(value, PdfString):
				value = value.to_unicode()

			# Filter the value.
			value = f(value)

			# Convert Python data type to PdfString.
			if isinstance(value, str):
				value = PdfString.encode(value)

			elif isinstance(value, datetime):
				# Convert datetime into a PDF "D" string format.
				value = value.strftime("%Y%m%d%H%M%S%z")
				if len(value) == 19:
					# If TZ info was include, add an apostrophe between the hour/minutes offsets.
					value = value[:17] + "'" + value[17:]
				value = PdfString("(D:%s)" % value)

			elif value is None:
				# delete the metadata value
				pass
			else:
				raise ValueError("Invalid type of value returned by metadata_filter function. %s was returned by %s." %
					(repr(value), getattr(f, "__name__", None) or "anonymous function"))

		# Replace value.
		trailer.Info[PdfName(key)] = value


def update_xmp_metadata(trailer, options):
	metadata = trailer.Root.Metadata
	if metadata is not None and metadata.stream is not None:
		# Safely parse the existing XMP data.
		from defusedxml.ElementTree import fromstring
		uncompress_streams([metadata])
		value = fromstring(metadata.stream.encode("latin-1"))
	else:
		# There is no XMP metadata in the document.
		value = None

	# Run each filter.
	for f in options.xmp_filters:
		value = f(value)

	# Set new metadata.
	if value is None:
		# Clear it.
		trailer.Root.Metadata = None
	else:
		# Serialize the XML and save it into the PDF metadata.

		# Get the serializer.
		serializer = options.xmp_serializer
		if serializer is None:
			# Use a default serializer based on xml.etree.ElementTree.tostring.
			def serializer(xml_root):
				import xml.etree.ElementTree
				xml.etree.ElementTree.register_namespace("xmp", "adobe:ns:meta/")
				xml.etree.ElementTree.register_namespace("pdf13", "http://ns.adobe.com/pdf/1.3/")
				xml.etree.ElementTree.register_namespace("xap", "http://ns.adobe.com/xap/1.0/")
				xml.etree.ElementTree.register_namespace("dc", "http://purl.org/dc/elements/1.1/")
				xml.etree.ElementTree.register_namespace("rdf", "http://www.w3.org/1999/02/22-rdf-syntax-ns#")
				return xml.etree.ElementTree.tostring(xml_root, encoding="unicode")

		# Create a fresh Metadata dictionary and serialize the XML into it. pdfrw
		# holds streams as Latin-1 decoded bytes.
		trailer.Root.Metadata = PdfDict()
		trailer.Root.Metadata.Type = PdfName("Metadata")
		trailer.Root.Metadata.Subtype = PdfName("XML")
		trailer.Root.Metadata.stream = serializer(value).encode("utf-8").decode("latin-1")


def remove_navigation(trailer):
	# The outline and page labels can repeat text from the pages.
	if trailer.Root.Outlines is not None:
		log.debug("Removing the document outline.")
		trailer.Root.Outlines = None
	if trailer.Root.PageLabels is not None:
		log.debug("Removing the page labels.")
		trailer.Root.PageLabels = None
	if trailer.Root.PageMode == "/UseOutlines":
		trailer.Root.PageMode = None
