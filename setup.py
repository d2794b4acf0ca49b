from setuptools import setup

setup(
	name='pdf-censor',
	version='0.1.0',
	description='Censors the text layer and the metadata of PDF documents.',
	long_description='''
	A PDF censoring tool in pure Python.

	pdf-censor uses pdfrw under the hood to parse and write out the PDF.

	It rewrites the content streams of the document's pages, including the forms
	and transparency groups they draw, instruction by instruction. Each glyph of the
	text layer is matched against token definitions (named regular expressions) and
	the glyphs of every matched token are removed from the page, leaving a gap as
	wide as the removed text so that the rest of the page does not move.

	It also:

	* replaces the Document Information Dictionary fields (Title, Author and so on)
	* removes or rewrites embedded XMP metadata
	* removes annotations, the outline and page labels
	''',
	packages=['pdf_censor'],
	classifiers=[
		'Development Status :: 4 - Beta',
		'Intended Audience :: Developers',
		'Operating System :: OS Independent',
		'Programming Language :: Python',
		'Programming Language :: Python :: 3',
		'Topic :: Office/Business',
		'Topic :: Software Development :: Libraries',
		'Topic :: Software Development :: Libraries :: Python Modules',
		'Topic :: Utilities',
	],
	python_requires='>=3.6',
	install_requires=[
		'pdfrw>=0.4',
		'defusedxml',
		'regex',
	],
	extras_require={
		'test': ['pytest'],
	},
)
