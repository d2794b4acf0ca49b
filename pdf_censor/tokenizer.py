# Incremental tokenizer for a stream of (character, payload) pairs.
#
# Text arrives in arbitrary fragments (a glyph at a time, in practice) and
# each character carries a payload that is opaque to us. When a token is
# recognized, the handler is called with the token's text, the payloads of
# exactly the characters that make it up, and the definition that matched.

import logging
from collections import deque, namedtuple

import regex

log = logging.getLogger(__name__)


class TokenDef(namedtuple("TokenDef", ["identifier", "pattern"])):
	"""A named regular expression describing one kind of token."""

	__slots__ = ()

	def __new__(cls, identifier, pattern):
		if not pattern:
			raise ValueError("The pattern of token definition %r is empty." % (identifier,))
		return super().__new__(cls, identifier, pattern)


def _no_handler(text, payload, token_def):
	pass


class Tokenizer(object):
	# The scan runs inline inside input(). A match is only committed once no
	# more input could change it: either the text after it is already here, or
	# the stream has ended (flush/close). Partial matching from the regex
	# module tells us whether the pending text is still the beginning of a
	# possible (longer) token.

	def __init__(self, definitions):
		definitions = list(definitions)
		if not definitions:
			raise ValueError("A tokenizer needs at least one token definition.")

		self.definitions = []
		self._alternatives = []
		for definition in definitions:
			if not isinstance(definition, TokenDef):
				definition = TokenDef(*definition)
			try:
				compiled = regex.compile(definition.pattern, regex.DOTALL)
			except regex.error as e:
				raise ValueError("The pattern of token definition %r is not a valid regular expression: %s"
					% (definition.identifier, e))

			# A token that can be empty would never let the scan advance.
			if compiled.fullmatch("") is not None:
				log.warning("Ignoring token definition %r because it matches the empty string.", definition.identifier)
				continue

			self.definitions.append(definition)
			self._alternatives.append(compiled)

		if not self.definitions:
			raise ValueError("None of the token definitions can be used.")

		# The definitions are tried one at a time, in order, rather than as one
		# combined alternation, so each keeps its own group numbering.
		log.debug("Initialized tokenizer with %d token definition(s).", len(self.definitions))

		self._handler = _no_handler
		self._payload = deque()
		# All text since the last reset. Only text from _pos on is pending; the
		# text before it stays as left context for lookbehinds and \b.
		self._text = ""
		self._pos = 0
		self.closed = False

	def set_handler(self, handler):
		# None installs the no-op handler.
		self._handler = handler if handler is not None else _no_handler

	def input(self, text, payload):
		if self.closed:
			raise ValueError("input() on a closed tokenizer.")
		if text is None or payload is None:
			raise ValueError("Both the text and its payload are required.")
		payload = list(payload)
		if len(text) != len(payload):
			raise ValueError("Text length (%d) and payload length (%d) do not match for %r."
				% (len(text), len(payload), text))

		self._payload.extend(payload)
		self._text += text
		self._scan(final=False)

	def flush(self):
		# Resolve whatever is pending as if the input ended here, then start
		# over as if freshly constructed. Reopens a closed tokenizer.
		log.debug("Flushing the tokenizer...")
		self._scan(final=True)
		self._reset()
		self.closed = False

	def close(self):
		if self.closed:
			return
		log.debug("Closing the tokenizer...")
		self._scan(final=True)
		self._reset()
		self.closed = True

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.close()
		return False

	def _reset(self):
		if self._payload:
			log.warning("Discarding %d payload entries left over after the tokenizer was drained.", len(self._payload))
		self._payload.clear()
		self._text = ""
		self._pos = 0

	def _extendable(self, text, pos):
		# True if more input could still change which token starts at pos, or
		# how long it is: the pending text is itself a token or the beginning
		# of one, or a match had to look past the end of what has arrived.
		for alternative in self._alternatives:
			if alternative.fullmatch(text, pos, partial=True) is not None:
				return True
			match = alternative.match(text, pos, partial=True)
			if match is not None and match.partial:
				return True
		return False

	def _match(self, text, pos):
		# The first definition, in order, with a non-empty match at pos.
		for definition, alternative in zip(self.definitions, self._alternatives):
			match = alternative.match(text, pos)
			if match is not None and match.end() > pos:
				return match.group(), definition
		# Nothing starts here. Pass the character on by itself.
		return text[pos], None

	def _scan(self, final):
		text = self._text
		pos = self._pos
		try:
			while pos < len(text):
				if not final and self._extendable(text, pos):
					break

				token, token_def = self._match(text, pos)

				# Consume the text and its payload before calling the handler so
				# nothing is delivered twice even if the handler raises.
				pos += len(token)
				payload = [self._payload.popleft() for _ in token]
				self._handler(token, payload, token_def)
		finally:
			self._pos = pos
