# Copyright (c) 2017, Joseph deBlaquiere <jadeblaquiere@yahoo.com>
# All rights reserved
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice, this
#   list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of ecpy nor the names of its
#   contributors may be used to endorse or promote products derived from
#   this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

from pypbc import *
from Crypto.Util.number import isPrime
from fsratchet.treeaddress import TreeAddress, ROOT
from binascii import hexlify, unhexlify
from hashlib import sha256
import asn1
import logging

log = logging.getLogger(__name__)


def ensure_tag(decoder, expected):
    tag = decoder.peek()
    if tag is None:
        raise ValueError("Error in DER format, expected tag %d, got EOF" %
                         expected)
    if tag.nr != expected:
        raise ValueError("Error in DER format, expected tag %d, got %d" %
                         (expected, tag.nr))


"""bte implements the binary tree encryption (BTE) scheme of Canetti, Halevi
   and Katz, "A Forward-Secure Public-Key Encryption Scheme", Eurocrypt2003
   (https://eprint.iacr.org/2003/083), which is the Gentry-Silverberg
   hierarchical IBE where identities are nodes of a binary tree.

   A symmetric pairing of Elliptic Curves (G1 X G1 -> GT) is provided by Ben
   Lynn's PBC library ("type a" parameters). Every node of the tree holds a
   secret key, and the key of a node can derive the keys of both of its
   children but not the other way around. Messages are elements of GT.

   Unlike the leaf-only variant, every node of the tree is used, so a
   ciphertext for a node at depth l carries l + 2 elements.
"""


class BTESecretKey (object):
    """Secret key for one tree address: R is the list of points Rw|1 .. Rw
    (one per edge from the root) and S the accumulated secret point.
    """
    def __init__(self, address, R, S):
        self.address = address
        self.R = R
        self.S = S

    def erase(self):
        # python cannot guarantee the memory is wiped, only that the
        # references held here are dropped
        self.R = []
        self.S = None

    def isErased(self):
        return self.S is None


class BTECiphertext (object):
    """U0 = lam P, U = [lam H(w|1) .. lam H(w)], V = M e(Q, H(root))**lam"""
    def __init__(self, U0, U, V):
        self.U0 = U0
        self.U = U
        self.V = V


class BTEPublicKey (object):
    def __init__(self):
        self.params = None
        self.pairing = None
        self.P = None
        self.Q = None
        self.gt = None
        self.eQH = None
        self.q = None
        self.r = None
        self.h = None
        self.exp2 = None
        self.exp1 = None
        self.sign1 = None
        self.sign0 = None

    @staticmethod
    def Gen(qbits, rbits):
        """The Gen function generates a pairing-based cryptosystem based on the
        CHK Model and returns the public key together with the secret key of
        the root node.

        The values qbits rbits are the parameters passed to
        pbc_param_init_a_gen() to derive the pairing. Refer to the PBC
        documentation for detail and/or security implications of these values.
        """
        if (qbits != int(qbits)) or (qbits < 0):
            raise ValueError("Invalid Input: qbits must be positive integer")
        if (rbits != int(rbits)) or (rbits < 0):
            raise ValueError("Invalid Input: rbits must be positive integer")
        if rbits > (qbits - 4):
            raise ValueError("Invalid Input: rbits cannot be > qbits - 4")
        pk = BTEPublicKey()
        # parameters specify "type A" pairing (symmetric based on Tate pairing)
        pk.params = Parameters(qbits=qbits, rbits=rbits, short=False)
        pk._validateParams()
        pk._setupPairing()
        pk.P = Element.random(pk.pairing, G1)
        # alpha is the master secret. it is not stored and only survives
        # inside the root secret key
        alpha = Element.random(pk.pairing, Zr)
        pk.Q = pk.P * alpha
        pk._precompute()
        S0 = pk.H(ROOT) * alpha
        log.info("generated BTE key, q bits = %d, r bits = %d",
                 pk.q.bit_length(), pk.r.bit_length())
        return (pk, BTESecretKey(ROOT, [], S0))

    def _setupPairing(self):
        self.pairing = Pairing(self.params)

    def _precompute(self):
        self.gt = self.pairing.apply(self.P, self.Q)
        # precaclulate the pairing of Q, H(root)
        self.eQH = self.pairing.apply(self.Q, self.H(ROOT))

    def _validateParams(self):
        strparams = str(self.params).split()
        self.q = int(strparams[3])
        if isPrime(self.q) is not True:
            raise ValueError("q must be prime")
        self.h = int(strparams[5])
        self.r = int(strparams[7])
        if isPrime(self.r) is not True:
            raise ValueError("r must be prime")
        if (self.q + 1) != (self.h * self.r):
            raise ValueError("h * r must equal q + 1")
        self.exp2 = int(strparams[9])
        if self.exp2 <= 0:
            raise ValueError("exp2 must be > 0")
        self.exp1 = int(strparams[11])
        if self.exp1 <= 0:
            raise ValueError("exp1 must be > 0")
        self.sign1 = int(strparams[13])
        if (self.sign1 != 1) and (self.sign1 != -1):
            raise ValueError("sign1 must be +/- 1")
        self.sign0 = int(strparams[15])
        if (self.sign0 != 1) and (self.sign0 != -1):
            raise ValueError("sign0 must be +/- 1")

    def _reconstructParams(self):
        """_reconstructParams composes a params string from the individual
        parameter values in the format which can be parsed by PBC
        """
        params = 'type a\nq ' + str(self.q) + '\nh ' + str(self.h)
        params += "\nr " + str(self.r) + "\nexp2 " + str(self.exp2)
        params += "\nexp1 " + str(self.exp1) + "\nsign1 " + str(self.sign1)
        params += "\nsign0 " + str(self.sign0) + "\n"
        return params

    def _hexprint_q(self, x):
        """_hexprint_q prints a zero-padded fixed length hex representation
        based on the bit size of q
        """
        pfmt = '%%0%dx' % (int((self.q.bit_length() + 7) // 8) * 2)
        return (pfmt % x)

    def _byterep_q(self, x):
        return unhexlify(self._hexprint_q(x))

    def H(self, address):
        """H hashes a tree address into G1. The address numbering is unique
        per node, so distinct nodes hash independently.
        """
        nodeId = address.toNumbering().to_bytes(5, 'big')
        digest = sha256(b'fsratchet-node' + nodeId).digest()
        return Element.from_hash(self.pairing, G1, digest)

    def _hashlist(self, address):
        # hashes of every node on the path, root excluded
        return [self.H(node) for node in address.ancestors()[1:]]

    def randomElement(self):
        """randomElement samples a uniform element of the target group"""
        return pow(self.gt, Element.random(self.pairing, Zr))

    def elementBytes(self, M):
        """elementBytes encodes a target group element as the fixed length
        big endian representation of both coordinates
        """
        return self._byterep_q(M[0]) + self._byterep_q(M[1])

    def elementFromBytes(self, Mb):
        n = len(Mb) // 2
        if (n == 0) or (len(Mb) != (2 * n)):
            raise ValueError("Invalid target group element encoding")
        Md = ("(0x" + hexlify(Mb[:n]).decode() + ", 0x" +
              hexlify(Mb[n:]).decode() + ")")
        return Element(self.pairing, GT, value=Md)

    def Enc(self, M, address, lam=None):
        """Enc encrypts a single target group element M for the node at
        address. lam (lambda) may be supplied for reproducible tests.
        """
        # lambda is a python reserved word, so here lam means lambda
        if lam is None:
            lam = Element.random(self.pairing, Zr)
        U0 = self.P * lam
        U = [H * lam for H in self._hashlist(address)]
        d = pow(self.eQH, lam)
        return BTECiphertext(U0, U, M * d)

    def Der(self, address, secret):
        """Der derives the secret keys of the left and right children of
        address from the secret key of address.
        """
        if address.isLeaf():
            raise ValueError("Cannot derive keys below leaf %s" % str(address))
        children = []
        for child in (address.left(), address.right()):
            pw = Element.random(self.pairing, Zr)
            R = secret.R[:]
            R.append(self.P * pw)
            S = secret.S + (self.H(child) * pw)
            children.append(BTESecretKey(child, R, S))
        log.debug("derived keys for children of %s", str(address))
        return (children[0], children[1])

    def Dec(self, address, secret, C):
        """Dec recovers the target group element from a ciphertext. The key
        of the address or of any ancestor decrypts correctly; any other key
        yields an unrelated element and no error is signaled.
        """
        # e(U0, S) / prod(e(Ri, Ui)) = e(Q, H(root)) ** lam
        d = self.pairing.apply(C.U0, secret.S)
        # an ancestor key has fewer R values; the extra U values drop out
        for R, U in zip(secret.R, C.U):
            d = d * pow(self.pairing.apply(R, U), self.r - 1)
        return C.V * pow(d, self.r - 1)

    # serialization

    def toDict(self):
        pubkey = {}
        params = {}
        params['q'] = self.q
        params['h'] = self.h
        params['r'] = self.r
        params['exp2'] = self.exp2
        params['exp1'] = self.exp1
        params['sign1'] = self.sign1
        params['sign0'] = self.sign0
        pubkey['params'] = params
        pubkey['P'] = str(self.P)
        pubkey['Q'] = str(self.Q)
        return pubkey

    @staticmethod
    def fromDict(pubkey):
        pk = BTEPublicKey()
        params = pubkey['params']
        pk.q = params['q']
        pk.h = params['h']
        pk.r = params['r']
        pk.exp2 = params['exp2']
        pk.exp1 = params['exp1']
        pk.sign1 = params['sign1']
        pk.sign0 = params['sign0']
        pk.params = Parameters(param_string=pk._reconstructParams())
        pk._validateParams()
        pk._setupPairing()
        pk.P = Element(pk.pairing, G1, value=pubkey['P'])
        pk.Q = Element(pk.pairing, G1, value=pubkey['Q'])
        pk._precompute()
        return pk

    def DEREncode(self, encoder):
        # enter pubkey
        encoder.enter(asn1.Numbers.Sequence)
        # curve/pairing parameters
        encoder.enter(asn1.Numbers.Sequence)
        encoder.write(self.q, asn1.Numbers.Integer)
        encoder.write(self.h, asn1.Numbers.Integer)
        encoder.write(self.r, asn1.Numbers.Integer)
        encoder.write(self.exp2, asn1.Numbers.Integer)
        encoder.write(self.exp1, asn1.Numbers.Integer)
        encoder.write(self.sign1, asn1.Numbers.Integer)
        encoder.write(self.sign0, asn1.Numbers.Integer)
        encoder.leave()
        # base points
        encoder.write(unhexlify(str(self.P)), asn1.Numbers.OctetString)
        encoder.write(unhexlify(str(self.Q)), asn1.Numbers.OctetString)
        # leave pubkey
        encoder.leave()

    @staticmethod
    def parseDER(decoder):
        pubkey = {}
        # enter pubkey
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        # enter curve/pairing parameters
        params = {}
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        for name in ('q', 'h', 'r', 'exp2', 'exp1', 'sign1', 'sign0'):
            ensure_tag(decoder, asn1.Numbers.Integer)
            tag, params[name] = decoder.read()
        # leave params
        decoder.leave()
        pubkey['params'] = params
        # P point
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, P = decoder.read()
        pubkey['P'] = hexlify(P).decode()
        # Q point
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, Q = decoder.read()
        pubkey['Q'] = hexlify(Q).decode()
        # leave pubkey
        decoder.leave()
        return BTEPublicKey.fromDict(pubkey)

    def secretToDict(self, secret):
        length, path = secret.address.address()
        return {'length': length, 'path': path,
                'Rw': [str(r) for r in secret.R], 'S': str(secret.S)}

    def secretFromDict(self, skey):
        address = TreeAddress(skey['length'], skey['path'])
        if len(skey['Rw']) != address.length():
            raise ValueError("Secret key for %s must have %d R values" %
                             (str(address), address.length()))
        R = [Element(self.pairing, G1, value=r) for r in skey['Rw']]
        S = Element(self.pairing, G1, value=skey['S'])
        return BTESecretKey(address, R, S)

    def secretDEREncode(self, encoder, secret):
        # enter key
        encoder.enter(asn1.Numbers.Sequence)
        addressDEREncode(encoder, secret.address)
        # enter Rw list
        encoder.enter(asn1.Numbers.Sequence)
        for r in secret.R:
            encoder.write(unhexlify(str(r)), asn1.Numbers.OctetString)
        # leave Rw list
        encoder.leave()
        # write S
        encoder.write(unhexlify(str(secret.S)), asn1.Numbers.OctetString)
        # leave key
        encoder.leave()

    def secretParseDER(self, decoder):
        skey = {}
        # enter key
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        address = addressParseDER(decoder)
        skey['length'], skey['path'] = address.address()
        # enter Rw list
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        Rw = []
        tag = decoder.peek()
        while (tag is not None) and (tag.nr == asn1.Numbers.OctetString):
            tag, R = decoder.read()
            Rw.append(hexlify(R).decode())
            tag = decoder.peek()
        # leave Rw list
        decoder.leave()
        skey['Rw'] = Rw
        # S
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, S = decoder.read()
        skey['S'] = hexlify(S).decode()
        # leave key
        decoder.leave()
        return self.secretFromDict(skey)

    def ciphertextToDict(self, C):
        return {'U0': str(C.U0), 'U': [str(u) for u in C.U],
                'V': hexlify(self.elementBytes(C.V)).decode()}

    def ciphertextFromDict(self, ctext):
        # importing the ciphertext as strings handles points coming from a
        # distinct pairing object
        U0 = Element(self.pairing, G1, value=ctext['U0'])
        U = [Element(self.pairing, G1, value=u) for u in ctext['U']]
        V = self.elementFromBytes(unhexlify(ctext['V']))
        return BTECiphertext(U0, U, V)

    def ciphertextDEREncode(self, encoder, C):
        encoder.enter(asn1.Numbers.Sequence)
        for c in [C.U0] + C.U:
            encoder.write(unhexlify(str(c)), asn1.Numbers.OctetString)
        encoder.enter(asn1.Numbers.Sequence)
        for n in range(0, 2):
            encoder.write(self._byterep_q(C.V[n]), asn1.Numbers.OctetString)
        encoder.leave()
        encoder.leave()

    def ciphertextParseDER(self, decoder):
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        points = []
        tag = decoder.peek()
        while (tag is not None) and (tag.nr != asn1.Numbers.Sequence):
            ensure_tag(decoder, asn1.Numbers.OctetString)
            tag, val = decoder.read()
            points.append(Element(self.pairing, G1,
                                  value=hexlify(val).decode()))
            tag = decoder.peek()
        if len(points) == 0:
            raise ValueError("Error in DER format, ciphertext has no U0")
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, vx = decoder.read()
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, vy = decoder.read()
        decoder.leave()
        decoder.leave()
        V = self.elementFromBytes(vx + vy)
        return BTECiphertext(points[0], points[1:], V)


def addressDEREncode(encoder, address):
    # enter address
    encoder.enter(asn1.Numbers.Sequence)
    encoder.write(address.length(), asn1.Numbers.Integer)
    encoder.write(address.path(), asn1.Numbers.Integer)
    # leave address
    encoder.leave()


def addressParseDER(decoder):
    # enter address
    ensure_tag(decoder, asn1.Numbers.Sequence)
    decoder.enter()
    ensure_tag(decoder, asn1.Numbers.Integer)
    tag, length = decoder.read()
    ensure_tag(decoder, asn1.Numbers.Integer)
    tag, path = decoder.read()
    # leave address
    decoder.leave()
    return TreeAddress(length, path)
