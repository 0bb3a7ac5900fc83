"""
Test cases for ldapbranch.distinguishedname module.
"""

from twisted.trial import unittest

from ldapbranch import distinguishedname as dn


class TestCaseWithKnownValues(unittest.TestCase):
    knownValues = ()

    def testKnownValues(self):
        for s, l in self.knownValues:
            fromString = dn.DistinguishedName(s)
            listOfRDNs = []
            for av in l:
                listOfAttributeTypesAndValues = []
                for a, v in av:
                    listOfAttributeTypesAndValues.append(
                        dn.LDAPAttributeTypeAndValue(attributeType=a, value=v))
                r = dn.RelativeDistinguishedName(listOfAttributeTypesAndValues)
                listOfRDNs.append(r)
            fromList = dn.DistinguishedName(listOfRDNs)

            self.assertEqual(fromString, fromList)
            self.assertEqual(fromString.getText(), fromList.getText())

            canon = fromString.getText()
            self.assertEqual(fromString, canon)
            self.assertEqual(fromList, canon)
            self.assertEqual(dn.DistinguishedName(canon), fromString)
            self.assertEqual(hash(dn.DistinguishedName(canon)), hash(fromList))


class DistinguishedName_Escaping(TestCaseWithKnownValues):
    knownValues = (
        ('', []),
        ('cn=foo', [[('cn', 'foo')]]),
        (r'cn=\,bar', [[('cn', r',bar')]]),
        (r'cn=foo\,bar', [[('cn', r'foo,bar')]]),
        (r'cn=foo\+bar', [[('cn', r'foo+bar')]]),
        (r'cn=\"bar', [[('cn', r'"bar')]]),
        (r'cn=foo\\bar', [[('cn', r'foo\bar')]]),
        (r'cn=foo\\', [[('cn', 'foo\\')]]),
        (r'cn=foo\<bar\>', [[('cn', r'foo<bar>')]]),
        (r'cn=foo\;', [[('cn', r'foo;')]]),
        (r'cn=\#bar', [[('cn', r'#bar')]]),
        (r'cn=\ bar', [[('cn', r' bar')]]),
        (r'cn=bar\ ', [[('cn', r'bar ')]]),
        (r'cn=test+owner=uid\=foo\,ou\=department\,dc\=example\,dc\=com,'
         r'dc=example,dc=com',
         [[('cn', 'test'), ('owner', 'uid=foo,ou=department,dc=example,dc=com')],
          [('dc', 'example')],
          [('dc', 'com')]]),
        (r'cn=bar, dc=example,  dc=com',
         [[('cn', 'bar')], [('dc', 'example')], [('dc', 'com')]]),
    )

    def testEqualsIsEscaped(self):
        """Slapd wants = to be escaped in RDN attribute values."""
        got = dn.DistinguishedName(listOfRDNs=[
            dn.RelativeDistinguishedName(attributeTypesAndValues=[
                dn.LDAPAttributeTypeAndValue(attributeType='cn', value='test'),
                dn.LDAPAttributeTypeAndValue(attributeType='owner', value='uid=foo,dc=com'),
            ]),
            dn.RelativeDistinguishedName('dc=com'),
        ])
        self.assertEqual(got.getText(), r'cn=test+owner=uid\=foo\,dc\=com,dc=com')

    def testHexEscapes(self):
        d = dn.DistinguishedName(r'CN=Before\0DAfter,O=Test,C=GB')
        self.assertEqual(d.split()[0].split()[0].value, 'Before\rAfter')


class DistinguishedName_RFC4514_Examples(TestCaseWithKnownValues):
    knownValues = (
        ('CN=Steve Kille,O=Isode Limited,C=GB',
         [[('CN', 'Steve Kille')], [('O', 'Isode Limited')], [('C', 'GB')]]),
        ('OU=Sales+CN=J. Smith,DC=example,DC=net',
         [[('OU', 'Sales'), ('CN', 'J. Smith')], [('DC', 'example')], [('DC', 'net')]]),
        (r'CN=James \"Jim\" Smith\, III,DC=example,DC=net',
         [[('CN', 'James "Jim" Smith, III')], [('DC', 'example')], [('DC', 'net')]]),
        ('1.3.6.1.4.1.1466.0=foo,O=Test,C=GB',
         [[('1.3.6.1.4.1.1466.0', 'foo')], [('O', 'Test')], [('C', 'GB')]]),
    )


class DistinguishedName_Init(unittest.TestCase):
    def testGetText(self):
        d = dn.DistinguishedName('dc=example,dc=com')
        self.assertEqual(d.getText(), 'dc=example,dc=com')
        self.assertEqual(str(d), 'dc=example,dc=com')

    def testPrettifySpaces(self):
        """getText() drops the whitespace between RDNs."""
        d = dn.DistinguishedName('cn=foo, o=bar,  c=us')
        self.assertEqual(d.getText(), 'cn=foo,o=bar,c=us')

    def testDN(self):
        proto = dn.DistinguishedName('dc=example,dc=com')
        d = dn.DistinguishedName(proto)
        self.assertEqual(d.getText(), 'dc=example,dc=com')

    def testBytes(self):
        d = dn.DistinguishedName(b'dc=example,dc=com')
        self.assertEqual(d, 'dc=example,dc=com')

    def testEqualityIgnoresCase(self):
        self.assertEqual(dn.DistinguishedName('CN=Foo,DC=Example,DC=com'),
                         dn.DistinguishedName('cn=foo,dc=example,dc=COM'))

    def testMultiValuedRDNIsUnordered(self):
        self.assertEqual(dn.DistinguishedName('cn=a+uid=b,dc=com'),
                         dn.DistinguishedName('uid=b+cn=a,dc=com'))

    def testRootIsTrue(self):
        root = dn.DistinguishedName('')
        self.assertEqual(len(root), 0)
        self.assertTrue(root)

    def testUpAndChild(self):
        d = dn.DistinguishedName('ou=people,dc=example,dc=com')
        self.assertEqual(d.up(), 'dc=example,dc=com')
        self.assertEqual(d.child('uid=jdoe'), 'uid=jdoe,ou=people,dc=example,dc=com')
        self.assertEqual(
            d.child(dn.RelativeDistinguishedName('cn=a+sn=b')).getText(),
            'cn=a+sn=b,ou=people,dc=example,dc=com')


class DistinguishedName_Malformed(unittest.TestCase):
    def testMalformed(self):
        for text in ('foo', 'foo,dc=com', 'ou=something,foo', 'cn=a,,dc=com',
                     '=foo,dc=com', 'c n=foo', 'cn=foo\\'):
            self.assertRaises(dn.InvalidDistinguishedName, dn.DistinguishedName, text)

    def testMalformedRDN(self):
        self.assertRaises(dn.InvalidRelativeDistinguishedName,
                          dn.RelativeDistinguishedName, 'foo')
        self.assertRaises(dn.InvalidRelativeDistinguishedName,
                          dn.RelativeDistinguishedName, [])

    def testInvalidIsValueError(self):
        self.assertRaises(ValueError, dn.DistinguishedName, 'nonsense')


class DistinguishedName_DomainName(unittest.TestCase):
    def testNonDc(self):
        d = dn.DistinguishedName('cn=foo,o=bar,c=us')
        self.assertIdentical(d.getDomainName(), None)

    def testNonTrailingDc(self):
        d = dn.DistinguishedName('cn=foo,o=bar,dc=foo,c=us')
        self.assertIdentical(d.getDomainName(), None)

    def testHostSubExampleCom(self):
        d = dn.DistinguishedName('cn=host,dc=sub,dc=example,dc=com')
        self.assertEqual(d.getDomainName(), 'sub.example.com')


class DistinguishedName_UFN(unittest.TestCase):
    def testValuesOnly(self):
        d = dn.DistinguishedName('uid=jdoe,ou=people,dc=example,dc=com')
        self.assertEqual(d.getUFN(), 'jdoe, people, example, com')

    def testMultiValuedRDN(self):
        d = dn.DistinguishedName('cn=web+l=Helsinki,dc=example,dc=com')
        self.assertEqual(d.getUFN(), 'web + Helsinki, example, com')

    def testEscapedValuesAreUnescaped(self):
        d = dn.DistinguishedName(r'cn=Doe\, Jane,o=Acme')
        self.assertEqual(d.getUFN(), 'Doe, Jane, Acme')

    def testRoot(self):
        self.assertEqual(dn.DistinguishedName('').getUFN(), '')


class DistinguishedName_contains(unittest.TestCase):
    hsec = dn.DistinguishedName('cn=host,dc=sub,dc=example,dc=com')
    sec = dn.DistinguishedName('dc=sub,dc=example,dc=com')
    ec = dn.DistinguishedName('dc=example,dc=com')
    oc = dn.DistinguishedName('dc=other,dc=com')
    root = dn.DistinguishedName('')

    def test_selfContainment(self):
        for x in (self.hsec, self.sec, self.ec, self.oc, self.root):
            self.assertTrue(x.contains(x))

    def test_realContainment(self):
        self.assertTrue(self.ec.contains(self.sec))
        self.assertTrue(self.ec.contains(self.hsec))
        self.assertTrue(self.sec.contains(self.hsec))
        self.assertTrue(self.root.contains(self.oc))

    def test_nonContainment(self):
        self.assertFalse(self.hsec.contains(self.sec))
        self.assertFalse(self.sec.contains(self.ec))
        self.assertFalse(self.oc.contains(self.sec))
        self.assertFalse(self.ec.contains(self.root))

    def test_text(self):
        self.assertTrue(self.ec.contains('CN=Host,DC=Sub,DC=Example,DC=Com'))


class DistinguishedName_Comparison(unittest.TestCase):
    """
    DNs are ordered by their position in the tree, not as text.
    """

    def test_parent_child(self):
        """
        The parent sorts before the child.
        """
        dn1 = dn.DistinguishedName('dc=example,dc=com')
        dn2 = dn.DistinguishedName('dc=and,dc=example,dc=com')

        self.assertLess(dn1, dn2)
        self.assertGreater(dn2, dn1)
        self.assertEqual(dn1.compare(dn2), -1)
        self.assertEqual(dn2.compare(dn1), 1)

    def test_siblings(self):
        """
        Siblings are ordered by their RDN.
        """
        a = dn.DistinguishedName('uid=alice,ou=people,dc=example,dc=com')
        b = dn.DistinguishedName('uid=bob,ou=people,dc=example,dc=com')

        self.assertLess(a, b)
        self.assertEqual(a.compare(a), 0)

    def test_firstDifferenceFromRootDecides(self):
        """
        A DN under an earlier subtree sorts first, however deep it is.
        """
        deep = dn.DistinguishedName('cn=z,ou=z,ou=a,dc=example,dc=com')
        shallow = dn.DistinguishedName('ou=b,dc=example,dc=com')

        self.assertLess(deep, shallow)

    def test_sorted(self):
        dns = [dn.DistinguishedName(x) for x in (
            'uid=b,ou=people,dc=example,dc=com',
            'dc=example,dc=com',
            'ou=people,dc=example,dc=com',
            'uid=a,ou=people,dc=example,dc=com',
        )]
        self.assertEqual([x.getText() for x in sorted(dns)], [
            'dc=example,dc=com',
            'ou=people,dc=example,dc=com',
            'uid=a,ou=people,dc=example,dc=com',
            'uid=b,ou=people,dc=example,dc=com',
        ])


class LDAPAttributeTypeAndValue_Tests(unittest.TestCase):
    def testEscapeRoundTrip(self):
        ava = dn.LDAPAttributeTypeAndValue(stringValue=r'cn=a\,b')
        self.assertEqual(ava.attributeType, 'cn')
        self.assertEqual(ava.value, 'a,b')
        self.assertEqual(ava.getText(), r'cn=a\,b')

    def testEscape(self):
        self.assertEqual(dn.escape(' #a,b '), r'\ #a\,b\ ')
        self.assertEqual(dn.unescape(r'\41\2c'), 'A,')
