#;encoding=utf-8
# Example file to censor Social Security Numbers from the
# text layer of a PDF and to demonstrate metadata filtering.

import logging
import sys
from datetime import datetime, timezone

import pdf_censor

logging.basicConfig(stream=sys.stderr, level=logging.INFO)

## Set options.

options = pdf_censor.CensorOptions()

options.metadata_filters = {
	# Perform some field filtering --- turn the Title into uppercase.
	"Title": [lambda value : value.upper() if value else value],

	# Set some values, overriding any value present in the PDF.
	"Producer": [lambda value : "My Name"],
	"CreationDate": [lambda value : datetime.now(timezone.utc)],

	# Clear all other fields.
	"DEFAULT": [lambda value : None],
}

# Clear any XMP metadata, if present.
options.xmp_filters = [lambda xml : None]

# Censor things that look like social security numbers. Glyphs are matched
# in the order they are drawn, and spaces are often not drawn at all.
# See https://github.com/opendata/SSN-Redaction for why this regex is complicated.
options.expressions = [
	pdf_censor.TokenDef("ssn", r"(?<!\d)(?!666|000|9\d{2})[OoIli0-9]{3}[\s\-−–—~‐]?(?!00)[OoIli0-9]{2}[\s\-−–—~‐]?(?!0{4})[OoIli0-9]{4}(?!\d)"),
]

# Keep links and comments.
options.remove_annotations = False

# Perform the censoring using PDF on standard input and writing to standard output.
for finding in pdf_censor.censor(options):
	logging.info("page %d: %s %s", finding.page, finding.identifier, finding.text)
