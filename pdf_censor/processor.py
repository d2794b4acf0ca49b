# Rewrites the content of each page of a document, instruction by
# instruction, letting a handler decide which glyphs to censor.
#
# Every content region being rewritten (the page itself, and any form or
# transparency group it draws, which may nest) gets a Frame on a stack. The
# frame on top is the one instructions are written to. When a region has been
# fully rewritten its frame is popped and released, which stores the new
# content in the region's stream.

import io
import logging

from pdfrw import IndirectPdfDict, PdfArray

from .content import literal_string, read_region
from .engine import CharacterPosition, ContentEngine, TextScanner, is_transparency_group
from .frames import Frame, ContentWriter

log = logging.getLogger(__name__)


class PdfHandler(object):
	"""Callbacks made while a document is processed. Override what you need."""

	def begin_document(self, document):
		pass

	def begin_page(self, page, page_number):
		pass

	def scan_text(self, characters):
		# Called with all the glyphs of a page, in the order they are drawn,
		# before any of them is asked about in should_censor.
		pass

	def should_censor(self, position):
		return True

	def end_page(self, page, page_number):
		pass

	def end_document(self, document):
		pass


class StreamProcessor(ContentEngine):
	def __init__(self, handler, drop_trailing=True, regions=None, fontcache=None):
		super().__init__(regions, fontcache)
		self.handler = handler
		self.drop_trailing = drop_trailing
		self.frames = None
		self.censor_next = False

	# The frame stack.

	def begin_session(self):
		if self.frames is not None:
			raise RuntimeError("A processing session is already open.")
		self.frames = []
		self.censor_next = False

	def enter_region(self, data, sink):
		if self.frames is None:
			log.warning("Content region entered outside of a processing session, ignoring it.")
			return None
		frame = Frame(io.BytesIO(data), sink)
		self.frames.append(frame)
		return ContentWriter(frame)

	def leave_region(self):
		if not self.frames:
			raise IndexError("Leaving a content region that was never entered.")
		frame = self.frames.pop()
		frame.release()
		return frame

	def current_writer(self):
		if self.frames is None:
			return None
		if not self.frames:
			raise IndexError("No content region is being rewritten.")
		return ContentWriter(self.frames[-1])

	def end_session(self):
		if self.frames:
			log.warning("%d content region(s) were not left before the end of the document.", len(self.frames))
		self.frames = None

	# Walking the document.

	def process(self, document):
		self.begin_session()
		try:
			self.handler.begin_document(document)
			for page_number, page in enumerate(document.pages, start=1):
				self.process_page(page, page_number)
		finally:
			try:
				self.handler.end_document(document)
			finally:
				self.end_session()

	def process_page(self, page, page_number):
		self.handler.begin_page(page, page_number)
		if page.Contents is None:
			self.handler.end_page(page, page_number)
			return

		resources = page.inheritable.Resources
		data = read_region(page.Contents)

		# Show the handler all of the page's text first, so that it can find
		# tokens that span several text operators.
		scanner = TextScanner(self.regions, self.fontcache)
		self.handler.scan_text(scanner.scan(data, resources, page_number))

		# A page may have an array of content streams. They are written back as
		# one.
		sink = IndirectPdfDict()
		self.enter_region(data, sink)
		try:
			self.censor_next = False
			self.run_page(self.frames[-1].source.read(), resources, page_number)
		finally:
			self.leave_region()
		page.Contents = sink

		self.handler.end_page(page, page_number)

	def replay_form(self, form, data, resources, font):
		log.debug("Rewriting %s on page %s.",
			"transparency group" if is_transparency_group(form) else "form", self.page_number)
		self.enter_region(data, form)
		try:
			# A form starts with a fresh graphics state, and so an instruction
			# in it is never the one following text censored outside of it.
			censor_next = self.censor_next
			self.censor_next = False
			self.run_region(self.frames[-1].source.read(), resources, font)
			self.censor_next = censor_next
		finally:
			self.leave_region()

	def process_instruction(self, instruction):
		writer = self.current_writer()
		if instruction.operator is None:
			# Trailing whitespace and comments.
			writer.write(instruction.raw)
			return
		if self.censor_next:
			# The instruction right after a censored text operator usually
			# positions the next piece of text relative to the censored one
			# (e.g. a Td). Drop it along with the text.
			self.censor_next = False
			log.debug("Dropping the %s following censored text.", instruction.operator)
			return
		writer.write(instruction.raw)

	def show_text(self, instruction, items):
		writer = self.current_writer()
		decisions = [self.handler.should_censor(item)
			for item in items if isinstance(item, CharacterPosition)]

		if not any(decisions):
			self.censor_next = False
			writer.write(instruction.raw)
			return

		# The line-moving and spacing effects of ' and " stay, the text goes.
		operands = instruction.operands
		if instruction.operator == "'":
			writer.write_tokens(["T*"])
		elif instruction.operator == '"' and len(operands) >= 3:
			writer.write_tokens([operands[-3], "Tw", operands[-2], "Tc", "T*"])

		if not all(decisions):
			writer.write_tokens([PdfArray(self.rebuild(items, decisions)), "TJ"])

		self.censor_next = self.drop_trailing and decisions[-1]

	def rebuild(self, items, decisions):
		# Rebuilds the operand of a TJ that shows only the kept glyphs. Each
		# censored glyph becomes a gap as wide as the glyph was, so the glyphs
		# around it don't move.
		decisions = iter(decisions)
		result = []
		pending = b""
		for item in items:
			if isinstance(item, CharacterPosition) and not next(decisions):
				pending += item.code
				continue

			if pending:
				result.append(literal_string(pending))
				pending = b""

			if isinstance(item, CharacterPosition):
				adjustment = -item.width
			else:
				try:
					adjustment = float(item)
				except (TypeError, ValueError):
					continue

			if result and isinstance(result[-1], float):
				result[-1] += adjustment
			else:
				result.append(adjustment)

		if pending:
			result.append(literal_string(pending))
		return result


class PdfProcessor(object):
	"""Runs a handler over a document, rewriting its page content."""

	def __init__(self, handler, drop_trailing=True):
		self.handler = handler
		self.drop_trailing = drop_trailing

	def process(self, document):
		StreamProcessor(self.handler, self.drop_trailing).process(document)
