# Walks the instructions of a page, descending into the forms and
# transparency groups it draws, and keeps track of the font so that the
# strings shown by text operators can be broken into glyphs.
#
# Subclasses decide what to do with what is found: the StreamProcessor
# rewrites the instructions, the TextScanner only collects the glyphs.

import logging
from collections import namedtuple

from pdfrw import PdfArray, PdfString

from .content import TEXT_SHOW_OPERATORS, iter_instructions, read_region
from .fonts import load_font

log = logging.getLogger(__name__)

# One glyph shown on a page. index counts the glyphs of the page in the order
# they are drawn; depth is the number of forms the glyph is nested in.
CharacterPosition = namedtuple("CharacterPosition",
	["index", "page", "text", "code", "width", "font", "operator", "depth"])


def is_transparency_group(form):
	return form.Group is not None and form.Group.S == "/Transparency"


class ContentEngine(object):
	def __init__(self, regions=None, fontcache=None):
		# The original bytes of each form, by object id. A form may be drawn
		# several times and is always replayed from what it held initially.
		self.regions = { } if regions is None else regions
		self.fontcache = { } if fontcache is None else fontcache
		self.page_number = None
		self.position = 0
		self.forms = []

	def region_content(self, region):
		key = id(region)
		if key not in self.regions:
			self.regions[key] = (region, read_region(region))
		return self.regions[key][1]

	def run_page(self, data, resources, page_number):
		self.page_number = page_number
		self.position = 0
		self.run_region(data, resources, None)

	def run_region(self, data, resources, font):
		# The font is part of the graphics state, so q and Q save and restore it.
		fonts = [font]
		for instruction in iter_instructions(data):
			operator = instruction.operator
			if operator in TEXT_SHOW_OPERATORS:
				self.show_text(instruction, self.locate(instruction, fonts[-1]))
				continue

			self.process_instruction(instruction)

			if operator == "q":
				fonts.append(fonts[-1])
			elif operator == "Q":
				if len(fonts) > 1:
					fonts.pop()
			elif operator == "Tf" and len(instruction.operands) >= 2:
				fonts[-1] = self.find_resource(resources, "Font", instruction.operands[-2])
			elif operator == "Do" and instruction.operands:
				xobject = self.find_resource(resources, "XObject", instruction.operands[-1])
				if xobject is not None and xobject.Subtype == "/Form":
					self.draw_form(xobject, resources, fonts[-1])

	def find_resource(self, resources, category, name):
		# e.g. resources.Font[name]
		if resources is None:
			return None
		entries = getattr(resources, category)
		if entries is None or not isinstance(name, str):
			return None
		return entries.get(name)

	def locate(self, instruction, font):
		# Breaks the strings shown by a text operator into glyphs and numbers
		# them. Returns the operand items in order: CharacterPositions for
		# glyphs, anything else (the spacing numbers of TJ) as it is.
		operands = instruction.operands
		if not operands:
			return []
		operand = operands[-1]
		if instruction.operator == "TJ" and isinstance(operand, PdfArray):
			parts = list(operand)
		else:
			parts = [operand]

		font = load_font(font, self.fontcache)
		items = []
		for part in parts:
			if not isinstance(part, PdfString):
				items.append(part)
				continue
			for glyph in font.glyphs(part.to_bytes()):
				items.append(CharacterPosition(self.position, self.page_number, glyph.text,
					glyph.code, glyph.width, font.name, instruction.operator, len(self.forms)))
				self.position += 1
		return items

	def draw_form(self, form, resources, font):
		if any(active is form for active in self.forms):
			log.warning("A form on page %s draws itself, not descending into it again.", self.page_number)
			return
		data = self.region_content(form)
		self.forms.append(form)
		try:
			# A form without resources of its own uses those of whoever draws it.
			self.replay_form(form, data, form.Resources or resources, font)
		finally:
			self.forms.pop()

	def replay_form(self, form, data, resources, font):
		self.run_region(data, resources, font)

	def process_instruction(self, instruction):
		pass

	def show_text(self, instruction, items):
		pass


class TextScanner(ContentEngine):
	"""Collects the glyphs of a page without changing anything."""

	def scan(self, data, resources, page_number):
		self.characters = []
		self.run_page(data, resources, page_number)
		return self.characters

	def show_text(self, instruction, items):
		self.characters.extend(item for item in items if isinstance(item, CharacterPosition))
