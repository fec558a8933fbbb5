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
import os
import tempfile
import unittest

from json_xml_converter import _get_parser, main


class TestParser(unittest.TestCase):
    def test(self):
        parser = _get_parser()
        args = parser.parse_args(["-n", self._get_path("example1.json")])
        self.assertFalse(args.header)
        self.assertTrue(args.use_number)
        self.assertFalse(args.verbose)
        args.infile.close()

    def test_float(self):
        parser = _get_parser()
        args = parser.parse_args(["-F", "-v", self._get_path("example1.json")])
        self.assertTrue(args.header)
        self.assertFalse(args.use_number)
        self.assertTrue(args.verbose)
        args.infile.close()

    def test_main(self):
        with tempfile.TemporaryDirectory() as tmp:
            outpath = os.path.join(tmp, "example1.xml")
            self.assertEqual(0, main([self._get_path("example1.json"),
                                      outpath]))
            with open(outpath, "r", encoding="utf-8") as actual, \
                    open(self._get_path("example1.xml"), "r",
                         encoding="utf-8") as expected:
                self.assertEqual(expected.read(), actual.read())

    def test_main_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            inpath = os.path.join(tmp, "bad.json")
            with open(inpath, "w", encoding="utf-8") as f:
                f.write('{"a": [1, 2}')
            with self.assertLogs("json_xml_converter", level="ERROR") as cm:
                self.assertEqual(1, main([inpath,
                                          os.path.join(tmp, "bad.xml")]))
            with open(os.path.join(tmp, "bad.xml"), "r",
                      encoding="utf-8") as actual:
                self.assertEqual(
                    '<?xml version="1.0" encoding="utf-8"?>\n'
                    '<object><array name="a"><number>1</number>'
                    '<number>2</number>', actual.read())

        self.assertEqual(
            ["ERROR:json_xml_converter:ParseError: Unexpected char `}`, "
             "expected `,` or `]` at 0:12"], cm.output)

    def _get_path(self, fname):
        return os.path.join(os.path.dirname(__file__), "files", fname)


if __name__ == '__main__':
    unittest.main()
