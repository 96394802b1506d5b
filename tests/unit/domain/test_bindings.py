"""Unit tests for BindingIndex and NodeClassifier call resolution."""

import unittest

from flakiness_linter.domain import syntax
from flakiness_linter.domain.bindings import CONST, IMPORT, LET, PARAM, REQUIRE
from flakiness_linter.domain.entities import CallIdentity
from tests.linter_test_utils import find_nodes, parse_source


def _identity(code: str, call_text: str) -> CallIdentity | None:
    source = parse_source(code)
    call = find_nodes(source, syntax.CALL, call_text)[0]
    return source.classifier.resolve_call_identity(call)


class TestBindingIndex(unittest.TestCase):
    def test_records_import_and_require_bindings(self) -> None:
        source = parse_source(
            "import fs from 'fs';\n"
            "import { screen as s } from '@testing-library/react';\n"
            "const { join } = require('path');\n"
            "let counter = 0;\n"
        )
        by_name = {b.name: b for b in source.bindings.bindings}
        self.assertEqual(by_name["fs"].kind, IMPORT)
        self.assertEqual(by_name["fs"].module, "fs")
        self.assertEqual(by_name["s"].imported, "screen")
        self.assertEqual(by_name["join"].kind, REQUIRE)
        self.assertEqual(by_name["join"].module, "path")
        self.assertEqual(by_name["counter"].kind, LET)
        self.assertTrue(by_name["counter"].mutable)

    def test_lookup_returns_nearest_enclosing_declaration(self) -> None:
        code = "const value = 1;\nfunction f(value) { use(value); }\n"
        source = parse_source(code)
        inner = find_nodes(source, syntax.IDENTIFIER, "value")[-1]
        binding = source.bindings.lookup("value", inner)
        self.assertIsNotNone(binding)
        self.assertEqual(binding.kind, PARAM)
        outer = find_nodes(source, syntax.IDENTIFIER, "value")[0]
        self.assertEqual(source.bindings.lookup("value", outer).kind, CONST)

    def test_block_scoped_names_are_not_visible_outside(self) -> None:
        source = parse_source("{ const hidden = 1; }\nuse(hidden);\n")
        use = find_nodes(source, syntax.IDENTIFIER, "hidden")[-1]
        self.assertFalse(source.bindings.is_bound("hidden", use))

    def test_program_binding(self) -> None:
        source = parse_source("import { waitFor } from '@testing-library/react';")
        self.assertIsNotNone(source.bindings.program_binding("waitFor"))
        self.assertIsNone(source.bindings.program_binding("render"))


class TestCallIdentity(unittest.TestCase):
    def test_member_call_on_default_import(self) -> None:
        identity = _identity("import fs from 'fs';\nfs.readFileSync('a');", "fs.readFileSync('a')")
        self.assertEqual(identity, CallIdentity(object="fs", method="readFileSync", module_origin="fs"))

    def test_renamed_named_import(self) -> None:
        identity = _identity("import { readFileSync as read } from 'fs';\nread('a');", "read('a')")
        self.assertEqual(identity.method, "readFileSync")
        self.assertEqual(identity.module_origin, "fs")
        self.assertIsNone(identity.object)

    def test_destructured_require(self) -> None:
        identity = _identity("const { writeFileSync } = require('fs');\nwriteFileSync('a', 'b');",
                             "writeFileSync('a', 'b')")
        self.assertEqual(identity.method, "writeFileSync")
        self.assertEqual(identity.module_origin, "fs")

    def test_require_member_initializer(self) -> None:
        identity = _identity("const fsp = require('fs').promises;\nfsp.readFile('a');", "fsp.readFile('a')")
        self.assertEqual(identity.object, "fsp")
        self.assertEqual(identity.module_origin, "fs")

    def test_const_alias_of_member_is_followed(self) -> None:
        identity = _identity("const read = fs.readFileSync;\nread('a');", "read('a')")
        self.assertEqual(identity.qualified_name, "fs.readFileSync")
        self.assertEqual(identity.module_origin, "fs")

    def test_unbound_conventional_name_resolves_to_module(self) -> None:
        identity = _identity("fs.mkdirSync('d');", "fs.mkdirSync('d')")
        self.assertEqual(identity.module_origin, "fs")

    def test_unbound_other_name_has_no_origin(self) -> None:
        identity = _identity("helper.mkdirSync('d');", "helper.mkdirSync('d')")
        self.assertIsNone(identity.module_origin)

    def test_shadowed_conventional_name_loses_origin(self) -> None:
        identity = _identity("const fs = makeFake();\nfs.mkdirSync('d');", "fs.mkdirSync('d')")
        self.assertIsNone(identity.module_origin)
