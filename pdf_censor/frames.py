# A Frame double-buffers one content region (a page, form or transparency
# group): instructions are read from its input source while the rewritten
# instructions collect in an in-memory buffer. Releasing the frame replaces
# the region's stream with whatever was written.

import io
import logging

from .content import write_region, token_str

log = logging.getLogger(__name__)

WHITESPACE = b" \t\r\n\f\x00"


class Frame(object):
	def __init__(self, source, sink):
		if source is None:
			raise ValueError("A frame needs an input source to read the region from.")
		if sink is None:
			raise ValueError("A frame needs a stream to write the region back into.")
		self._source = source
		self.sink = sink
		self.output = io.BytesIO()
		self.tail = b""

	@property
	def source(self):
		# The source belongs to the frame. Don't close it, release the frame.
		return self._source

	def write(self, data):
		self.output.write(data)
		if data:
			self.tail = data[-1:]

	def release(self):
		self._source.close()
		data = self.output.getvalue()
		self.output.close()
		log.debug("Writing %d bytes of rewritten content.", len(data))
		write_region(self.sink, data)

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.release()
		return False


class ContentWriter(object):
	"""Writes instructions into a frame."""

	def __init__(self, frame):
		self.frame = frame

	def write(self, raw):
		self.frame.write(raw)

	def write_tokens(self, tokens):
		# Serializes newly built operands and operators, keeping them apart
		# from whatever was written before.
		data = (" ".join(token_str(token) for token in tokens) + "\n").encode("latin-1")
		if self.frame.tail and self.frame.tail not in WHITESPACE:
			data = b"\n" + data
		self.frame.write(data)
