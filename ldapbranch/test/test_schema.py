"""
Test cases for ldapbranch.schema module.
"""

import datetime

from twisted.trial import unittest

from ldapbranch import schema, syntaxes, testutil


class AttributeTypeDescription(unittest.TestCase):
    def test_parse(self):
        text = ("( 2.5.4.3 NAME ( 'cn' 'commonName' ) DESC 'RFC4519: common name' "
                "SUP name EQUALITY caseIgnoreMatch "
                "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15{32768} X-ORIGIN 'RFC 4519' )")
        at = schema.AttributeTypeDescription(text)
        self.assertEqual(at.oid, '2.5.4.3')
        self.assertEqual(at.name, ('cn', 'commonName'))
        self.assertEqual(at.getName(), 'cn')
        self.assertEqual(at.desc, 'RFC4519: common name')
        self.assertEqual(at.sup, 'name')
        self.assertEqual(at.equality, 'caseIgnoreMatch')
        self.assertEqual(at.syntax, '1.3.6.1.4.1.1466.115.121.1.15{32768}')
        self.assertEqual(at.syntaxOID, syntaxes.DIRECTORY_STRING)
        self.assertEqual(at.x_attr('x-origin'), ('RFC 4519',))
        self.assertFalse(at.single_value)
        self.assertFalse(at.operational)

    def test_operational(self):
        text = ("( 2.5.18.1 NAME 'createTimestamp' EQUALITY generalizedTimeMatch "
                "SYNTAX 1.3.6.1.4.1.1466.115.121.1.24 SINGLE-VALUE "
                "NO-USER-MODIFICATION USAGE directoryOperation )")
        at = schema.AttributeTypeDescription(text)
        self.assertTrue(at.single_value)
        self.assertTrue(at.no_user_modification)
        self.assertEqual(at.usage, 'directoryOperation')
        self.assertTrue(at.operational)

    def test_noName(self):
        at = schema.AttributeTypeDescription('( 1.2.3.4 SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 )')
        self.assertEqual(at.names, ())
        self.assertEqual(at.getName(), '1.2.3.4')

    def test_decode(self):
        single = schema.AttributeTypeDescription(
            "( 1.1 NAME 'uidNumber' SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 SINGLE-VALUE )")
        multi = schema.AttributeTypeDescription(
            "( 1.2 NAME 'luckyNumber' SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 )")
        self.assertEqual(single.decode(['1000']), 1000)
        self.assertIdentical(single.decode([]), None)
        self.assertEqual(multi.decode(['1', '2']), (1, 2))
        self.assertEqual(multi.decode([]), ())


class ObjectClassDescription(unittest.TestCase):
    def test_parse(self):
        text = ("( 2.5.6.6 NAME 'person' DESC 'RFC2256: a person' SUP top STRUCTURAL "
                "MUST ( sn $ cn ) MAY ( userPassword $ telephoneNumber ) )")
        oc = schema.ObjectClassDescription(text)
        self.assertEqual(oc.oid, '2.5.6.6')
        self.assertEqual(oc.name, ('person',))
        self.assertEqual(oc.sup, ('top',))
        self.assertEqual(oc.type, 'STRUCTURAL')
        self.assertTrue(oc.structural)
        self.assertEqual(oc.ownMust, ('sn', 'cn'))
        self.assertEqual(oc.ownMay, ('userPassword', 'telephoneNumber'))
        self.assertEqual(oc.must, ('sn', 'cn'))

    def test_kinds(self):
        self.assertTrue(schema.ObjectClassDescription(
            "( 2.5.6.0 NAME 'top' ABSTRACT MUST objectClass )").abstract)
        self.assertTrue(schema.ObjectClassDescription(
            "( 1.3.6.1.1.1.2.6 NAME 'ipHost' SUP top AUXILIARY )").auxiliary)

    def test_defaultKind(self):
        oc = schema.ObjectClassDescription("( 1.2.3 NAME 'thing' )")
        self.assertEqual(oc.type, 'STRUCTURAL')
        self.assertEqual(oc.sup, ())

    def test_obsolete(self):
        oc = schema.ObjectClassDescription("( 1.2.3 NAME 'thing' OBSOLETE )")
        self.assertTrue(oc.obsolete)

    def test_lowercaseKeywords(self):
        oc = schema.ObjectClassDescription("( 1.2.3 name 'thing' must cn )")
        self.assertEqual(oc.ownMust, ('cn',))


class OtherDescriptions(unittest.TestCase):
    def test_syntax(self):
        s = schema.SyntaxDescription(
            "( 1.3.6.1.4.1.1466.115.121.1.5 DESC 'Binary' "
            "X-NOT-HUMAN-READABLE 'TRUE' X-BINARY-TRANSFER-REQUIRED 'TRUE' )")
        self.assertEqual(s.desc, 'Binary')
        self.assertFalse(s.human_readable)
        self.assertTrue(s.binary_transfer_required)

    def test_syntaxDefaults(self):
        s = schema.SyntaxDescription("( 1.3.6.1.4.1.1466.115.121.1.15 DESC 'Directory String' )")
        self.assertTrue(s.human_readable)
        self.assertFalse(s.binary_transfer_required)

    def test_matchingRule(self):
        mr = schema.MatchingRuleDescription(
            "( 2.5.13.2 NAME 'caseIgnoreMatch' SYNTAX 1.3.6.1.4.1.1466.115.121.1.15 )")
        self.assertEqual(mr.getName(), 'caseIgnoreMatch')
        self.assertEqual(mr.syntax, '1.3.6.1.4.1.1466.115.121.1.15')

    def test_matchingRuleNeedsSyntax(self):
        self.assertRaises(schema.SchemaParseError,
                          schema.MatchingRuleDescription, "( 2.5.13.2 NAME 'x' )")

    def test_matchingRuleUse(self):
        mru = schema.MatchingRuleUseDescription(
            "( 2.5.13.14 NAME 'integerMatch' APPLIES ( uidNumber $ gidNumber ) )")
        self.assertEqual(mru.applies, ('uidNumber', 'gidNumber'))


class ParseErrors(unittest.TestCase):
    def test_invalid(self):
        for text in ("2.5.6.0 NAME 'top'",
                     "( 2.5.6.0 NAME 'top'",
                     "( 2.5.6.0 NAME 'top' ) trailing",
                     "( 2.5.6.0 NAME 'top' FROB x )",
                     "( 2.5.6.0 NAME ( ) )",
                     "( 2.5.6.0 DESC unquoted )",
                     "( 2.5.6.0 NAME 'unterminated )"):
            self.assertRaises(schema.SchemaParseError,
                              schema.ObjectClassDescription, text)

    def test_isValueError(self):
        self.assertRaises(ValueError, schema.ObjectClassDescription, "nonsense")

    def test_message(self):
        e = schema.SchemaParseError("unexpected end", "( 1.2")
        self.assertEqual(str(e), "Invalid schema definition: unexpected end in '( 1.2'")


class Inheritance(unittest.TestCase):
    def test_effectiveMust(self):
        """
        A class's effective MUST is its own plus its superior's.
        """
        s = schema.Schema({
            'objectClasses': [
                "( 1.1 NAME 'c1' MUST ( a $ b ) MAY x )",
                "( 1.2 NAME 'c2' SUP c1 MUST c MAY y )",
            ],
        })
        self.assertEqual(set(s.mustAttributes('c2')), {'a', 'b', 'c'})
        self.assertEqual(set(s.mayAttributes('c2')), {'x', 'y'})
        self.assertEqual(s.objectClass('c2').ownMust, ('c',))

    def test_superiorDefinedLater(self):
        s = schema.Schema({
            'objectClasses': [
                "( 1.2 NAME 'c2' SUP c1 MUST c )",
                "( 1.1 NAME 'c1' MUST a )",
            ],
        })
        self.assertEqual(set(s.mustAttributes('c2')), {'a', 'c'})

    def test_mustWinsOverMay(self):
        s = schema.Schema({
            'objectClasses': [
                "( 1.1 NAME 'c1' MAY ( a $ b ) )",
                "( 1.2 NAME 'c2' SUP c1 MUST A )",
            ],
        })
        self.assertEqual(s.mustAttributes('c2'), ('A',))
        self.assertEqual(s.mayAttributes('c2'), ('b',))

    def test_multipleSuperiors(self):
        s = schema.Schema({
            'objectClasses': [
                "( 1.1 NAME 'c1' MUST a )",
                "( 1.2 NAME 'c2' MUST b )",
                "( 1.3 NAME 'c3' SUP ( c1 $ c2 ) MUST a )",
            ],
        })
        self.assertEqual(s.mustAttributes('c3'), ('a', 'b'))

    def test_testSchema(self):
        s = schema.Schema(testutil.TEST_SCHEMA)
        self.assertEqual(set(s.mustAttributes('inetOrgPerson')), {'sn', 'cn', 'objectClass'})
        self.assertIn('givenName', s.mayAttributes('inetOrgPerson'))
        self.assertIn('title', s.mayAttributes('inetOrgPerson'))

    def test_unknownSuperior(self):
        s = schema.Schema({'objectClasses': ["( 1.2 NAME 'c2' SUP nowhere MUST c )"]})
        self.assertEqual(s.mustAttributes('c2'), ('c',))

    def test_objectClassCycle(self):
        self.assertRaises(schema.SchemaCycleError, schema.Schema, {
            'objectClasses': [
                "( 1.1 NAME 'c1' SUP c3 )",
                "( 1.2 NAME 'c2' SUP c1 )",
                "( 1.3 NAME 'c3' SUP c2 )",
            ],
        })

    def test_selfSuperior(self):
        e = self.assertRaises(schema.SchemaCycleError, schema.Schema, {
            'objectClasses': ["( 1.1 NAME 'c1' SUP c1 )"],
        })
        self.assertEqual(e.chain, ('c1', 'c1'))

    def test_attributeTypeCycle(self):
        self.assertRaises(schema.SchemaCycleError, schema.Schema, {
            'attributeTypes': [
                "( 1.1 NAME 'a1' SUP a2 )",
                "( 1.2 NAME 'a2' SUP a1 )",
            ],
        })

    def test_attributeTypeInheritsSyntax(self):
        s = schema.Schema(testutil.TEST_SCHEMA)
        cn = s.attributeType('cn')
        self.assertEqual(cn.syntaxOID, syntaxes.DIRECTORY_STRING)
        self.assertEqual(cn.equality, 'caseIgnoreMatch')
        self.assertEqual(s.attributeType('seeAlso').syntaxOID, syntaxes.DISTINGUISHED_NAME)


class Lookup(unittest.TestCase):
    def setUp(self):
        self.schema = schema.Schema(testutil.TEST_SCHEMA)

    def test_byNameAndOID(self):
        cn = self.schema.attributeType('cn')
        self.assertIdentical(self.schema.attributeType('commonName'), cn)
        self.assertIdentical(self.schema.attributeType('CN'), cn)
        self.assertIdentical(self.schema.attributeType('2.5.4.3'), cn)
        self.assertIdentical(self.schema.objectClass('INETORGPERSON'),
                             self.schema.objectClass('2.16.840.1.113730.3.2.2'))

    def test_unknown(self):
        self.assertIdentical(self.schema.attributeType('frobnicator'), None)
        self.assertIdentical(self.schema.objectClass('frobnicator'), None)
        self.assertFalse(self.schema.isAttributeName('frobnicator'))
        self.assertTrue(self.schema.isAttributeName('surname'))

    def test_unknownObjectClassAttributes(self):
        self.assertEqual(self.schema.mustAttributes('frobnicator'), ())
        self.assertEqual(self.schema.mayAttributes('frobnicator'), ())

    def test_all(self):
        names = [oc.getName() for oc in self.schema.allObjectClasses()]
        self.assertEqual(names[:3], ['top', 'person', 'organizationalPerson'])
        self.assertEqual(len(self.schema.allAttributeTypes()),
                         len(testutil.TEST_SCHEMA['attributeTypes']))

    def test_sections(self):
        self.assertIn('integerMatch', self.schema.matchingRules)
        self.assertIn('1.3.6.1.4.1.1466.115.121.1.27', self.schema.ldapSyntaxes)
        self.assertEqual(self.schema.matchingRuleUse['integerMatch'].applies,
                         ('uidNumber', 'gidNumber'))

    def test_empty(self):
        s = schema.Schema({})
        self.assertEqual(s.allObjectClasses(), [])
        self.assertIdentical(s.attributeType('cn'), None)


class Decoding(unittest.TestCase):
    def setUp(self):
        self.schema = schema.Schema(testutil.TEST_SCHEMA)

    def test_singleValued(self):
        self.assertEqual(self.schema.decodeValues('uidNumber', ['1000']), 1000)
        self.assertEqual(self.schema.decodeValues('displayName', ['Jane']), 'Jane')

    def test_multiValued(self):
        self.assertEqual(self.schema.decodeValues('cn', [b'a', b'b']), ('a', 'b'))

    def test_unknownType(self):
        self.assertEqual(self.schema.decodeValues('frobnicator', [b'a']), ('a',))
        self.assertEqual(self.schema.decodeValue('frobnicator', b'a'), 'a')

    def test_timestamp(self):
        got = self.schema.decodeValue('createTimestamp', '20240101000000Z')
        self.assertEqual(got, datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc))

    def test_boolean(self):
        self.assertIdentical(self.schema.decodeValues('hasSubordinates', ['FALSE']), False)


class ForDirectory(unittest.TestCase):
    def test_cached(self):
        directory = testutil.DirectoryTestDriver()
        first = schema.Schema.forDirectory(directory)
        self.assertIdentical(schema.Schema.forDirectory(directory), first)
        self.assertEqual(directory.schemaFetches, 1)

    def test_reload(self):
        directory = testutil.DirectoryTestDriver()
        first = schema.Schema.forDirectory(directory)
        second = schema.Schema.forDirectory(directory, reload=True)
        self.assertNotIdentical(first, second)
        self.assertEqual(directory.schemaFetches, 2)
