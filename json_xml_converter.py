# coding: utf-8
#  JSON XML Converter - a pure python streaming JSON to XML converter.
#
#     Copyright (C) 2021 J. Férard <https://github.com/jferard>
#
#  This file is part of JSON XML Converter.
#
#  JSON XML Converter is free software: you can redistribute it and/or modify
#  it under the terms of the GNU General Public License as published by
#  the Free Software Foundation, either version 3 of the License, or
#  (at your option) any later version.
#
#  JSON XML Converter is distributed in the hope that it will be useful,
#  but WITHOUT ANY WARRANTY; without even the implied warranty of
#  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  GNU General Public License for more details.
#
#  You should have received a copy of the GNU General Public License
#  along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""
Convert a stream of JSON tokens into a stream of XML tokens.

Each JSON value is wrapped in an element named after its type:

    {"Location": {"Longitude": -1.8262, "Latitude": 51.1789}}

becomes

    <object><object name="Location"><number name="Longitude">-1.8262</number>
    <number name="Latitude">51.1789</number></object></object>

Members of an object carry their key in a `name` attribute.
"""
import argparse
import logging
import math
import re
import sys
from decimal import Decimal
from enum import Enum
from io import TextIOBase
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union
from xml.etree.ElementTree import Element, TreeBuilder
from xml.sax.saxutils import XMLGenerator

# https://datatracker.ietf.org/doc/html/rfc8259

logger = logging.getLogger("json_xml_converter")

##########
# TOKENS #
##########


class Delim(Enum):
    """
    JSON delimiters
    """
    BEGIN_OBJECT = "{"
    END_OBJECT = "}"
    BEGIN_ARRAY = "["
    END_ARRAY = "]"


class JSONNumber:
    """
    A number literal, as the source wrote it.
    """
    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text

    def __eq__(self, other):
        return isinstance(other, JSONNumber) and self.text == other.text

    def __hash__(self):
        return hash(self.text)

    def __float__(self):
        return float(self.text)

    def __repr__(self):
        return "JSONNumber({!r})".format(self.text)

    def __str__(self):
        return self.text


class StartElement(NamedTuple):
    name: str
    key: Optional[str] = None

    def attributes(self) -> Dict[str, str]:
        if self.key is None:
            return {}
        return {"name": self.key}


class CharData(NamedTuple):
    data: str


class EndElement(NamedTuple):
    name: str


XMLToken = Union[StartElement, CharData, EndElement]


##################
# JSON TOKENIZER #
##################


class JSONParseError(ValueError):
    """
    A parse error
    """

    def __init__(self, msg: Any, line: int, column: int):
        self.msg = msg
        self.line = line
        self.column = column

    def __repr__(self):
        return "ParseError: {} at {}:{}".format(self.msg, self.line,
                                                self.column)

    def __str__(self):
        return repr(self)


WHITE_SPACES = " \t\r\n"
DIGITS = "0123456789"
HEX_DIGITS = "0123456789abcdefABCDEF"
ESCAPES = {'"': '"', "\\": "\\", "/": "/", "b": "\b", "f": "\f", "n": "\n",
           "r": "\r", "t": "\t"}
_CLOSING = {Delim.BEGIN_OBJECT: "}", Delim.BEGIN_ARRAY: "]"}


class TokenizerState(Enum):
    """
    What the tokenizer expects next.
    """
    VALUE = 0
    FIRST_KEY = 1  # after `{`
    KEY = 2  # after `,` in an object
    COLON = 3
    FIRST_ITEM = 4  # after `[`
    AFTER_VALUE = 5
    DONE = 6


class JSONTokenizer:
    """
    Read a JSON document and yield the tokens the `Converter` expects:
    `Delim` members, keys and strings as `str`, `bool`, `None` and numbers
    as `JSONNumber` (or `float` if `use_number` is false). Separators are
    checked, but not yielded.
    """

    def __init__(self, source: TextIOBase, use_number: bool = True):
        self._source = source
        self._use_number = use_number
        self._unget = None  # a one place buffer to `unget` a char
        self.line = 0
        self.column = 0

    def __iter__(self):
        containers = []  # type: List[Delim]
        state = TokenizerState.VALUE
        while True:
            c = self._read_non_space()
            if not c:
                if containers or state not in (TokenizerState.VALUE,
                                               TokenizerState.DONE):
                    self._parse_error("Unexpected end of file (state = `{}`)",
                                      state)
                return

            if state == TokenizerState.DONE:
                self._parse_error("Unexpected char `{}` after top-level value",
                                  c)
            elif state == TokenizerState.COLON:
                if c != ":":
                    self._parse_error("Expected `:`, got `{}`", c)
                state = TokenizerState.VALUE
            elif state == TokenizerState.AFTER_VALUE:
                container = containers[-1]
                if c == ",":
                    if container == Delim.BEGIN_OBJECT:
                        state = TokenizerState.KEY
                    else:
                        state = TokenizerState.VALUE
                elif c == _CLOSING[container]:
                    containers.pop()
                    state = self._state_after_value(containers)
                    yield Delim(c)
                else:
                    self._parse_error("Unexpected char `{}`, expected `,` or "
                                      "`{}`", c, _CLOSING[container])
            elif state in (TokenizerState.FIRST_KEY, TokenizerState.KEY):
                if c == "}" and state == TokenizerState.FIRST_KEY:
                    containers.pop()
                    state = self._state_after_value(containers)
                    yield Delim.END_OBJECT
                elif c == '"':
                    state = TokenizerState.COLON
                    yield self._read_string()
                else:
                    self._parse_error("Expected object key, got `{}`", c)
            elif c == "]" and state == TokenizerState.FIRST_ITEM:
                containers.pop()
                state = self._state_after_value(containers)
                yield Delim.END_ARRAY
            else:  # a value
                token = self._read_value(c)
                if token is Delim.BEGIN_OBJECT:
                    containers.append(token)
                    state = TokenizerState.FIRST_KEY
                elif token is Delim.BEGIN_ARRAY:
                    containers.append(token)
                    state = TokenizerState.FIRST_ITEM
                else:
                    state = self._state_after_value(containers)
                yield token

    @staticmethod
    def _state_after_value(containers: List[Delim]) -> TokenizerState:
        if containers:
            return TokenizerState.AFTER_VALUE
        return TokenizerState.DONE

    def _read_value(self, c: str) -> Any:
        if c == "{":
            return Delim.BEGIN_OBJECT
        elif c == "[":
            return Delim.BEGIN_ARRAY
        elif c == '"':
            return self._read_string()
        elif c == "t":
            self._expect("rue", "true")
            return True
        elif c == "f":
            self._expect("alse", "false")
            return False
        elif c == "n":
            self._expect("ull", "null")
            return None
        elif c == "-" or c in DIGITS:
            return self._read_number(c)
        else:
            self._parse_error("Unexpected char `{}`", c)

    def _read_string(self) -> str:
        buf = []
        high = None  # a pending high surrogate
        while True:
            c = self._read()
            if not c:
                self._parse_error("Missing end quote `{}`", "".join(buf))
            if c == "\\":
                c = self._read()
                if c == "u":
                    code = self._read_hex4()
                    if high is not None:
                        if 0xDC00 <= code <= 0xDFFF:
                            code = (0x10000 + ((high - 0xD800) << 10)
                                    + (code - 0xDC00))
                            buf.append(chr(code))
                            high = None
                            continue
                        buf.append("\ufffd")
                        high = None
                    if 0xD800 <= code <= 0xDBFF:
                        high = code
                    elif 0xDC00 <= code <= 0xDFFF:
                        buf.append("\ufffd")
                    else:
                        buf.append(chr(code))
                    continue
                if high is not None:
                    buf.append("\ufffd")
                    high = None
                try:
                    buf.append(ESCAPES[c])
                except KeyError:
                    self._parse_error("Unknown escaped char `{}`", c)
                continue

            if high is not None:
                buf.append("\ufffd")
                high = None
            if c == '"':
                return "".join(buf)
            elif c < " ":
                self._parse_error("Unescaped control char `{!r}`", c)
            buf.append(c)

    def _read_hex4(self) -> int:
        digits = ""
        for _ in range(4):
            c = self._read()
            if not c or c not in HEX_DIGITS:
                self._parse_error("Expected hex digit, got `{}`", c)
            digits += c
        return int(digits, 16)

    def _read_number(self, c: str) -> Union[JSONNumber, float]:
        buf = [c]
        if c == "-":
            c = self._read()
            if not c:
                self._parse_error("Missing digits `{}`", "".join(buf))
            elif c not in DIGITS:
                self._parse_error("Expected digit, got `{}`", c)
            buf.append(c)
        if c == "0":  # no leading zeros
            c = self._read()
        else:
            c = self._read_digits(buf)
        if c == ".":
            buf.append(c)
            c = self._read()
            if not c or c not in DIGITS:
                self._parse_error("Missing decimals `{}`", "".join(buf))
            buf.append(c)
            c = self._read_digits(buf)
        if c and c in "eE":
            buf.append(c)
            c = self._read()
            if c and c in "+-":
                buf.append(c)
                c = self._read()
            if not c or c not in DIGITS:
                self._parse_error("Missing exp `{}`", "".join(buf))
            buf.append(c)
            c = self._read_digits(buf)
        self._unget = c or None

        text = "".join(buf)
        if self._use_number:
            return JSONNumber(text)
        return float(text)

    def _read_digits(self, buf: List[str]) -> str:
        """
        Append the digits to `buf`, return the first char that is not a
        digit.
        """
        while True:
            c = self._read()
            if not c or c not in DIGITS:
                return c
            buf.append(c)

    def _expect(self, rest: str, word: str):
        for expected in rest:
            if self._read() != expected:
                self._parse_error("Expected `{}`", word)

    def _read_non_space(self) -> str:
        c = self._read()
        while c and c in WHITE_SPACES:
            c = self._read()
        return c

    def _read(self) -> str:
        if self._unget:
            c = self._unget
            self._unget = None
            return c
        c = self._source.read(1)
        if c == "\n":
            self.line += 1
            self.column = 0
        elif c:
            self.column += 1
        return c

    def _parse_error(self, msg: Any, *parameters):
        if parameters:
            msg = msg.format(*parameters)
        raise JSONParseError(msg, self.line, self.column)


#############
# CONVERTER #
#############


class ConversionError(ValueError):
    """
    A JSON token that can't be converted at this point of the stream.
    """
    default_msg = "conversion error"

    def __init__(self, token: Any, msg: Optional[str] = None):
        self.token = token
        self.msg = msg or self.default_msg

    def __repr__(self):
        if isinstance(self.token, Delim):
            token = self.token.value
        else:
            token = repr(self.token)
        return "{}: {} `{}`".format(type(self).__name__, self.msg, token)

    def __str__(self):
        return repr(self)


class InvalidKeyError(ConversionError):
    default_msg = "invalid key type"


class UnknownTokenError(ConversionError):
    default_msg = "unknown token type"


class InvalidTokenError(ConversionError):
    default_msg = "invalid token"


class TypeTag(Enum):
    """
    The kind of a JSON value. The value is the element name.
    """
    OBJECT = "object"
    ARRAY = "array"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    NULL = "null"

    @property
    def is_container(self) -> bool:
        return self is TypeTag.OBJECT or self is TypeTag.ARRAY


def format_number(number: Union[JSONNumber, float, int, Decimal]) -> str:
    """
    >>> format_number(2.0)
    '2'
    >>> format_number(1.5e-7)
    '0.00000015'
    >>> format_number(JSONNumber("1.50e3"))
    '1.50e3'

    :param number: a number token
    :return: the decimal text of the number, without exponent
    """
    if isinstance(number, float):
        if math.isnan(number):
            return "NaN"
        elif math.isinf(number):
            return "+Inf" if number > 0 else "-Inf"
        text = format(Decimal(repr(number)), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    elif isinstance(number, Decimal):
        return format(number, "f")
    else:
        return str(number)


class Converter:
    """
    An iterator over the XML tokens of a JSON token stream.

    Scalars are emitted in two or three steps: the start element, the char
    data (except for null) on the next call, then the end element. The
    scalar stays on the stack until its end element is emitted.
    """

    def __init__(self, source: Iterable[Any]):
        self._source = iter(source)
        self._types = []  # type: List[TypeTag]
        self._data = None  # type: Optional[str]

    @property
    def depth(self) -> int:
        return len(self._types)

    def __iter__(self):
        return self

    def __next__(self) -> XMLToken:
        if self._data is not None:
            data = self._data
            self._data = None
            return CharData(data)

        if self._types and not self._types[-1].is_container:
            return self._output_end()

        key = None
        token = next(self._source)
        if (self._types and self._types[-1] is TypeTag.OBJECT
                and token is not Delim.END_OBJECT):
            if token is Delim.END_ARRAY:
                raise InvalidTokenError(token)
            elif not isinstance(token, str):
                raise InvalidKeyError(token)
            key = token
            token = next(self._source)
            if token is Delim.END_OBJECT or token is Delim.END_ARRAY:
                raise InvalidTokenError(
                    token, "missing value for key {!r}, got".format(key))

        if isinstance(token, Delim):
            if token is Delim.BEGIN_OBJECT:
                return self._output_start(TypeTag.OBJECT, key)
            elif token is Delim.BEGIN_ARRAY:
                return self._output_start(TypeTag.ARRAY, key)
            elif token is Delim.END_OBJECT:
                expected = TypeTag.OBJECT
            else:
                expected = TypeTag.ARRAY
            if not self._types or self._types[-1] is not expected:
                raise InvalidTokenError(token)
            return self._output_end()
        elif isinstance(token, bool):
            return self._output_value(TypeTag.BOOLEAN,
                                      "true" if token else "false", key)
        elif isinstance(token, (float, int, Decimal, JSONNumber)):
            return self._output_value(TypeTag.NUMBER, format_number(token),
                                      key)
        elif isinstance(token, str):
            return self._output_value(TypeTag.STRING, token, key)
        elif token is None:
            return self._output_start(TypeTag.NULL, key)
        else:
            raise UnknownTokenError(token)

    def _output_value(self, typ: TypeTag, data: str,
                      key: Optional[str]) -> StartElement:
        self._data = data
        return self._output_start(typ, key)

    def _output_start(self, typ: TypeTag,
                      key: Optional[str]) -> StartElement:
        self._types.append(typ)
        return StartElement(typ.value, key)

    def _output_end(self) -> EndElement:
        typ = self._types.pop()
        return EndElement(typ.value)


def convert(source: Iterable[Any], sink) -> int:
    """
    Convert JSON tokens and send the XML tokens to `sink`.

    :param source: an iterable of JSON tokens
    :param sink: an object with an `encode_token` method
    :return: the number of XML tokens sent
    """
    count = 0
    for token in Converter(source):
        sink.encode_token(token)
        count += 1
    logger.debug("Converted JSON stream into %d XML tokens", count)
    return count


#######
# XML #
#######


class XMLWriteError(ValueError):
    pass


# https://www.w3.org/TR/2008/REC-xml-20081126/#NT-Char
_NOT_XML_CHAR = re.compile(
    "[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def _xml_chars(text: str) -> str:
    """
    Replace the chars that XML 1.0 forbids

    >>> _xml_chars("a\\x01b\\tc") == "a\\ufffdb\\tc"
    True

    :param text: the text
    :return: the text, with U+FFFD in place of forbidden chars
    """
    return _NOT_XML_CHAR.sub("\ufffd", text)


class XMLWriter:
    """
    A sink that writes XML text. Escaping is done by the `XMLGenerator`.

    If `dest` is a text stream, the chars are written as is and `encoding`
    is only the name written in the XML declaration: it must be the
    encoding of the stream. If `dest` is a binary stream, the chars are
    encoded with `encoding`.
    """

    def __init__(self, dest, encoding: str = "utf-8", header: bool = True):
        self._generator = XMLGenerator(dest, encoding,
                                       short_empty_elements=False)
        self._open = []  # type: List[str]
        if header:
            self._generator.startDocument()

    def encode_token(self, token: XMLToken):
        if isinstance(token, StartElement):
            attributes = {name: _xml_chars(value)
                          for name, value in token.attributes().items()}
            self._generator.startElement(token.name, attributes)
            self._open.append(token.name)
        elif isinstance(token, CharData):
            self._generator.characters(_xml_chars(token.data))
        elif isinstance(token, EndElement):
            if not self._open or self._open[-1] != token.name:
                raise XMLWriteError(
                    "End element `{}` does not close `{}`".format(
                        token.name, self._open[-1] if self._open else None))
            self._open.pop()
            self._generator.endElement(token.name)
        else:
            raise XMLWriteError("Unknown XML token `{!r}`".format(token))

    def close(self):
        if self._open:
            raise XMLWriteError(
                "Unclosed elements `{}`".format("/".join(self._open)))
        self._generator.endDocument()


class ElementTreeBuilder:
    """
    A sink that builds an `xml.etree.ElementTree.Element`.
    """

    def __init__(self):
        self._builder = TreeBuilder()

    def encode_token(self, token: XMLToken):
        if isinstance(token, StartElement):
            self._builder.start(token.name, token.attributes())
        elif isinstance(token, CharData):
            self._builder.data(token.data)
        elif isinstance(token, EndElement):
            self._builder.end(token.name)
        else:
            raise XMLWriteError("Unknown XML token `{!r}`".format(token))

    def close(self) -> Element:
        return self._builder.close()


def json2xml(source: TextIOBase, dest, use_number: bool = True,
             header: bool = True, encoding: str = "utf-8"):
    """
    Convert JSON to XML
    :param source: the JSON text stream
    :param dest: the XML stream, text or binary
    :param use_number: keep numbers as written in the source
    :param header: write the XML declaration
    :param encoding: the encoding of a binary `dest`. For a text `dest`,
        only the name written in the XML declaration: it must match the
        encoding of the stream.
    """
    writer = XMLWriter(dest, encoding, header)
    convert(JSONTokenizer(source, use_number), writer)
    writer.close()


################
# COMMAND LINE #
################


def _get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert a JSON file to an XML file.')
    parser.add_argument('infile', nargs='?',
                        type=argparse.FileType('r', encoding="utf-8"),
                        default=sys.stdin, help='a JSON file to convert')
    parser.add_argument('outfile', nargs='?',
                        type=argparse.FileType('w', encoding="utf-8"),
                        default=sys.stdout, help='the output file')
    parser.add_argument('-n', '--no-header', dest='header',
                        help='omit the XML declaration',
                        action='store_false')
    parser.add_argument('-F', '--float', dest='use_number',
                        help=('decode numbers as floats instead of keeping '
                              'their text (may lose precision)'),
                        action='store_false')
    parser.add_argument('-v', '--verbose',
                        help='log debug messages', action='store_true')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _get_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s")
    try:
        json2xml(args.infile, args.outfile, use_number=args.use_number,
                 header=args.header)
    except (JSONParseError, ConversionError, XMLWriteError,
            UnicodeError) as e:
        logger.error("%s", e)
        return 1
    finally:
        for f in (args.infile, args.outfile):
            if f not in (sys.stdin, sys.stdout):
                f.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
