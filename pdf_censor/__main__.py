# Censors the PDF on standard input, writing the censored PDF to standard
# output. Every glyph of the text layer is censored.

import logging
import sys

from .censor import CensorOptions, censor


def main():
	logging.basicConfig(stream=sys.stderr, level=logging.INFO,
		format="%(levelname)s %(name)s: %(message)s")
	findings = censor(CensorOptions())
	logging.getLogger(__name__).info("Censored %d piece(s) of text.", len(findings))


if __name__ == "__main__":
	main()
