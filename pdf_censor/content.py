# Reading and writing page content streams.
#
# pdfrw's PdfTokens does lexical analysis only. We group its tokens into
# instructions (the operands followed by their operator) and remember where
# each instruction sits in the stream so it can be copied back out byte for
# byte.

import re
from collections import namedtuple

from pdfrw import PdfTokens, PdfDict, PdfArray, PdfObject, PdfString
from pdfrw.objects.pdfname import BasePdfName
from pdfrw.uncompress import uncompress as uncompress_streams

# The text-showing operators:
#
#   (text) Tj      -- show a string of text
#   (text) '       -- move to next line and show a string of text
#   aw ac (text) " -- show a string of text with word/character spacing parameters
#   [ ... ] TJ     -- show text strings from the array, which are interleaved with spacing parameters
TEXT_SHOW_OPERATORS = ("Tj", "TJ", "'", '"')

NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)$")

# The binary data of an inline image runs from ID to the first EI that stands
# on its own.
INLINE_IMAGE_DATA = re.compile(r"\bID\s")
INLINE_IMAGE_END = re.compile(r"\sEI(?=\s|$)")

# operator is None for whatever trails the last operator in a stream.
Instruction = namedtuple("Instruction", ["operator", "operands", "raw"])


def is_operator(token):
	if not isinstance(token, PdfObject) or isinstance(token, (PdfString, BasePdfName)):
		return False
	return not NUMBER.match(token) and token not in ("true", "false", "null")


def chunk_pairs(s):
	while len(s) >= 2:
		yield (s.pop(0), s.pop(0))


def iter_tokens(text, startloc=0):
	# Yields each top-level token together with the location just past it.
	# Arrays ([ .. ]) and dictionaries (<< ... >>) are collapsed into single
	# token entries.
	tokens = PdfTokens(text, startloc)
	stack = []
	for token in tokens:
		# Is this a control token?
		if token == "<<":
			# begins a dictionary
			stack.append((PdfDict, []))
			continue
		elif token == "[":
			# begins an array
			stack.append((PdfArray, []))
			continue
		elif token in (">>", "]") and stack:
			# ends a dictionary or array
			constructor, content = stack.pop(-1)
			if constructor == PdfDict:
				# Turn flat list into key/value pairs.
				content = chunk_pairs(content)
			token = constructor(content)

		# If we're inside something, add this token to that thing.
		if stack:
			stack[-1][1].append(token)
			continue

		yield token, tokens.floc


def iter_instructions(data):
	# Splits a content stream (bytes) into instructions. Concatenating the raw
	# bytes of all yielded instructions gives back the stream exactly,
	# including whitespace and comments.
	text = data.decode("latin-1")
	start = 0
	loc = 0
	operands = []
	while loc is not None:
		restart = None
		for token, end in iter_tokens(text, loc):
			if not is_operator(token):
				operands.append(token)
				continue

			if token == "BI":
				# An inline image. Its data is binary and would confuse the
				# tokenizer, so carry BI ... ID ... EI through as a single
				# opaque instruction and pick up lexing after it.
				data_start = INLINE_IMAGE_DATA.search(text, end)
				image_end = INLINE_IMAGE_END.search(text, data_start.end() if data_start else end)
				end = image_end.end() if image_end else len(text)
				yield Instruction("BI", operands, text[start:end].encode("latin-1"))
				start = restart = end
				operands = []
				break

			yield Instruction(str(token), operands, text[start:end].encode("latin-1"))
			start = end
			operands = []
		loc = restart

	if start < len(text):
		yield Instruction(None, operands, text[start:].encode("latin-1"))


def read_region(region):
	# Returns the decoded bytes of a content region. A page's Contents may be
	# a single stream or an array of streams, which are treated as if they were
	# concatenated into a single stream, as PDF readers do.
	if isinstance(region, PdfArray):
		streams = [stream for stream in region if stream is not None]
	else:
		streams = [region]

	# If a compression Filter is applied, attempt to un-apply it. Streams
	# with a filter pdfrw doesn't understand are left as they are.
	uncompress_streams(streams)

	chunks = []
	for stream in streams:
		if not isinstance(stream, PdfDict):
			raise IOError("Content region %r is not a stream." % (stream,))
		if stream.Filter is not None:
			raise IOError("Cannot decode a content stream compressed with %s." % (stream.Filter,))
		chunks.append((stream.stream or "").encode("latin-1"))
	return b"\n".join(chunks)


def write_region(sink, data):
	# Replaces the contents of a stream object with the given bytes. The
	# stream is written out uncompressed.
	if not isinstance(sink, PdfDict):
		raise IOError("Cannot write content into %r, it is not a stream." % (sink,))
	sink.Filter = None
	sink.DecodeParms = None
	sink.stream = data.decode("latin-1")
	sink.Length = len(data)


def literal_string(data):
	# Serializes bytes as a PDF literal string, escaping what must be escaped.
	out = []
	for b in data:
		c = chr(b)
		if c in "\\()":
			out.append("\\" + c)
		elif 32 <= b < 127:
			out.append(c)
		else:
			out.append("\\%03o" % b)
	return PdfString("(" + "".join(out) + ")")


def format_number(value):
	text = ("%.4f" % value).rstrip("0").rstrip(".")
	return "0" if text in ("", "-0") else text


def token_str(token):
	# The str on PdfArray and PdfDict doesn't work right for content streams.
	if isinstance(token, PdfArray):
		return "[" + " ".join(token_str(x) for x in token) + "]"
	if isinstance(token, PdfDict):
		return "<< " + " ".join(token_str(x) + " " + token_str(y) for x, y in token.items()) + " >>"
	if isinstance(token, float):
		return format_number(token)
	return str(token)
