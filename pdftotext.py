# Example file to print the text layer of a PDF, page by page, in the order
# the glyphs are drawn.

import sys

from pdfrw import PdfReader

import pdf_censor


class TextPrinter(pdf_censor.PdfHandler):
	def scan_text(self, characters):
		if characters:
			print("".join(character.text for character in characters))

	def should_censor(self, position):
		return False


pdf_censor.PdfProcessor(TextPrinter()).process(PdfReader(sys.stdin.buffer))
