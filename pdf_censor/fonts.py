# Glyph-level view of the strings shown by text operators.
#
# With a simple font, the text is a string whose bytes are glyph codes. With
# a composite font, a CMap maps multi-byte character codes to glyphs. In
# either case, we must map glyphs to unicode characters so that we can
# pattern match against them, and we need each glyph's width so that a
# censored glyph can be replaced by an equally wide gap.

from collections import namedtuple

from pdfrw import PdfString, PdfArray
from pdfrw.uncompress import uncompress as uncompress_streams

from .content import iter_tokens, chunk_pairs

# code is the glyph's bytes in the string, text its Unicode characters and
# width its advance in thousandths of text space.
Glyph = namedtuple("Glyph", ["code", "text", "width"])


def number(value, default=0.0):
	try:
		return float(value)
	except (TypeError, ValueError):
		return default


def chunk_triples(s):
	while len(s) >= 3:
		yield (s.pop(0), s.pop(0), s.pop(0))


class CMap(object):
	def __init__(self, cmap):
		self.bytes_to_unicode = { }

		# Decompress the CMap stream. If it is compressed in a way we can't
		# understand, we just won't find any mappings in it.
		uncompress_streams([cmap])

		# This is based on https://github.com/euske/pdfminer/blob/master/pdfminer/cmapdb.py.
		in_cmap = False
		operand_stack = []

		def add_mapping(code, char, offset=0):
			# Some range operands take an array.
			if isinstance(char, PdfArray):
				char = char[offset]
				offset = 0

			# The Unicode character is given usually as a hex string of one or more
			# two-byte Unicode code points.
			if not isinstance(char, PdfString):
				return
			char = char.to_bytes().decode("utf-16-be", "replace")
			if offset > 0 and char:
				char = char[0:-1] + chr(ord(char[-1]) + offset)

			self.bytes_to_unicode[code] = char

		for token, _ in iter_tokens(cmap.stream or ""):
			if token == "begincmap":
				in_cmap = True
				operand_stack[:] = []
				continue
			elif token == "endcmap":
				in_cmap = False
				continue
			if not in_cmap:
				continue

			if token in ("begincodespacerange", "beginbfrange", "begincidrange",
					"beginbfchar", "begincidchar", "beginnotdefrange"):
				operand_stack[:] = []

			elif token in ("endbfrange", "endcidrange"):
				for (code1, code2, char) in chunk_triples(operand_stack):
					if not isinstance(code1, PdfString) or not isinstance(code2, PdfString):
						continue
					code1 = code1.to_bytes()
					width = len(code1)
					first = int.from_bytes(code1, "big")
					last = int.from_bytes(code2.to_bytes(), "big")
					for code in range(first, last + 1):
						add_mapping(code.to_bytes(width, "big"), char, code - first)
				operand_stack[:] = []

			elif token in ("endbfchar", "endcidchar"):
				for (code, char) in chunk_pairs(operand_stack):
					if not isinstance(code, PdfString):
						continue
					add_mapping(code.to_bytes(), char)
				operand_stack[:] = []

			elif token in ("endcodespacerange", "endnotdefrange", "def", "usecmap"):
				operand_stack[:] = []

			else:
				operand_stack.append(token)

	def lookup(self, code):
		return self.bytes_to_unicode.get(code)


class Font(object):
	codec = "latin-1"

	def __init__(self, font=None):
		self.font = font
		self.name = None
		self.composite = False
		self.cmap = None
		if font is None:
			return

		if font.BaseFont:
			self.name = str(font.BaseFont).lstrip("/")

		# Composite fonts use two-byte codes (Identity-H and friends).
		self.composite = font.Subtype == "/Type0"

		# Use the CMap, which maps character codes to Unicode code points.
		if font.ToUnicode is not None:
			self.cmap = CMap(font.ToUnicode)

		encoding = font.Encoding
		if encoding is not None and not isinstance(encoding, str):
			encoding = encoding.BaseEncoding
		self.codec = {
			"/WinAnsiEncoding": "cp1252",
			"/MacRomanEncoding": "mac_roman",
		}.get(encoding, "latin-1")

		if self.composite:
			self._load_cid_widths()

	def _load_cid_widths(self):
		# The W array of the descendant CIDFont holds the widths as runs of
		# either "c [w1 w2 ...]" or "cfirst clast w".
		self.cid_widths = { }
		self.default_width = 1000.0
		descendants = self.font.DescendantFonts
		if not descendants:
			return
		cidfont = descendants[0]
		if cidfont.DW is not None:
			self.default_width = number(cidfont.DW, 1000.0)
		entries = list(cidfont.W or [])
		i = 0
		while i + 1 < len(entries):
			first = entries[i]
			if isinstance(entries[i + 1], PdfArray):
				for offset, width in enumerate(entries[i + 1]):
					self.cid_widths[int(first) + offset] = number(width)
				i += 2
			elif i + 2 < len(entries):
				for code in range(int(first), int(entries[i + 1]) + 1):
					self.cid_widths[code] = number(entries[i + 2])
				i += 3
			else:
				break

	def width(self, code):
		if self.font is None:
			return 0.0
		if self.composite:
			return self.cid_widths.get(code, self.default_width)
		widths = self.font.Widths
		first = int(self.font.FirstChar or 0)
		if widths is not None and first <= code < first + len(widths):
			return number(widths[code - first])
		descriptor = self.font.FontDescriptor
		if descriptor is not None and descriptor.MissingWidth is not None:
			return number(descriptor.MissingWidth)
		return 0.0

	def to_unicode(self, code):
		if self.cmap is not None:
			text = self.cmap.lookup(code)
			if text is not None:
				return text
		if self.composite:
			return "?"
		return code.decode(self.codec, "replace")

	def glyphs(self, string):
		# Splits the bytes of a shown string into glyphs.
		size = 2 if self.composite else 1
		for i in range(0, len(string), size):
			code = string[i:i + size]
			yield Glyph(code, self.to_unicode(code), self.width(int.from_bytes(code, "big")))


def load_font(font, fontcache):
	# Fonts are parsed once per document.
	key = id(font)
	if key not in fontcache:
		fontcache[key] = (font, Font(font))
	return fontcache[key][1]
