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

from fsratchet.bte import BTEPublicKey, ensure_tag, addressDEREncode, \
    addressParseDER
from fsratchet.treeaddress import TreeAddress, ROOT, DEPTH
from Crypto.Cipher import AES
from hashlib import sha256
import json
import asn1
import logging

log = logging.getLogger(__name__)

DEFAULT_QBITS = 512
DEFAULT_RBITS = 160

# Fixed stream cipher nonce. Every encryption samples a fresh target group
# element and so a fresh key; a key is never used with this nonce twice.
NONCE = bytes(8)


"""ratchet builds forward-secure hybrid public key encryption on top of the
   binary tree encryption in fsratchet.bte. The public and private states
   each track a current node of the depth 32 key-evolution tree and advance
   ("ratchet") through the tree in preorder.

   Encryption picks a random element of the pairing target group, hashes it
   to an AES key, encrypts the payload with AES-CTR and encrypts the element
   for the current node. The private state keeps a stack (the frontier) of
   exactly the secret keys needed to reach every node not yet visited. Keys
   are popped and erased as the private state ratchets, so a compromised
   private state cannot decrypt messages for earlier nodes.

   The public and private states ratchet independently; callers must keep
   them in sync. Payloads are not padded and decryption is not
   authenticated: a ciphertext for a different node decrypts to garbage.
"""


class RatchetError(Exception):
    pass


class Exhausted(RatchetError):
    """Raised when ratcheting past the last node of the tree"""
    def __init__(self, message='the ratchet is exhausted and has no more '
                               'keys'):
        super(Exhausted, self).__init__(message)


def kdf(pubkey, element, address):
    """kdf hashes a target group element into a 256 bit AES key. The input
    is not the bare element: a fixed tag and the numbering of the tree
    address are hashed in front of it. A key for an ancestor node decrypts
    the element correctly, but must not recover the payload.
    """
    nodeId = address.toNumbering().to_bytes(5, 'big')
    return sha256(b'fsratchet-kdf' + nodeId +
                  pubkey.elementBytes(element)).digest()


def _streamxor(key, data):
    aescipher = AES.new(key, AES.MODE_CTR, nonce=NONCE)
    return aescipher.encrypt(data)


class Ciphertext (object):
    def __init__(self, hiddenKey, payload):
        self.hiddenKey = hiddenKey
        self.payload = payload

    def toJSON(self, pubkey):
        ctext = {'hidden_key': pubkey.ciphertextToDict(self.hiddenKey),
                 'payload': self.payload.hex()}
        return json.dumps(ctext)

    @staticmethod
    def fromJSON(pubkey, ctextJ):
        ctext = json.loads(ctextJ)
        hiddenKey = pubkey.ciphertextFromDict(ctext['hidden_key'])
        return Ciphertext(hiddenKey, bytes.fromhex(ctext['payload']))

    def toDER(self, pubkey):
        encoder = asn1.Encoder()
        encoder.start()
        encoder.enter(asn1.Numbers.Sequence)
        pubkey.ciphertextDEREncode(encoder, self.hiddenKey)
        encoder.write(self.payload, asn1.Numbers.OctetString)
        encoder.leave()
        return encoder.output()

    @staticmethod
    def fromDER(pubkey, ctextD):
        decoder = asn1.Decoder()
        decoder.start(ctextD)
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        hiddenKey = pubkey.ciphertextParseDER(decoder)
        ensure_tag(decoder, asn1.Numbers.OctetString)
        tag, payload = decoder.read()
        decoder.leave()
        if decoder.eof() is not True:
            raise ValueError("DER Content beyond expected EOF")
        return Ciphertext(hiddenKey, payload)


class PublicState (object):
    """PublicState holds the public key and the current tree address. It
    carries no secrets; ratcheting it is plain bookkeeping and may be undone
    with ratchetTo.
    """
    def __init__(self, pubkey, address=ROOT):
        self.pubkey = pubkey
        self.current = address

    def address(self):
        return self.current

    def ratchet(self):
        nextAddress = self.current.successor()
        if nextAddress is None:
            raise Exhausted()
        self.current = nextAddress

    def ratchetTo(self, address):
        self.current = address

    def encrypt(self, payload, lam=None):
        """encrypt hides a fresh random element under the current address
        and uses its hash to encrypt the payload with AES-CTR
        """
        E = self.pubkey.randomElement()
        ct = _streamxor(kdf(self.pubkey, E, self.current), bytes(payload))
        hiddenKey = self.pubkey.Enc(E, self.current, lam)
        return Ciphertext(hiddenKey, ct)

    def _toDict(self):
        length, path = self.current.address()
        return {'pubkey': self.pubkey.toDict(),
                'length': length, 'path': path}

    def toJSON(self):
        return json.dumps(self._toDict())

    @staticmethod
    def fromJSON(pubstateJ):
        pubstate = json.loads(pubstateJ)
        pubkey = BTEPublicKey.fromDict(pubstate['pubkey'])
        address = TreeAddress(pubstate['length'], pubstate['path'])
        return PublicState(pubkey, address)

    def toDER(self):
        encoder = asn1.Encoder()
        encoder.start()
        encoder.enter(asn1.Numbers.Sequence)
        self.pubkey.DEREncode(encoder)
        addressDEREncode(encoder, self.current)
        encoder.leave()
        return encoder.output()

    @staticmethod
    def fromDER(pubstateD):
        decoder = asn1.Decoder()
        decoder.start(pubstateD)
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        pubkey = BTEPublicKey.parseDER(decoder)
        address = addressParseDER(decoder)
        decoder.leave()
        if decoder.eof() is not True:
            raise ValueError("DER Content beyond expected EOF")
        return PublicState(pubkey, address)


class PrivateState (object):
    """PrivateState holds the public key, the current tree address and the
    frontier, a stack of secret keys whose top (last element) is always the
    key for the current address. Ratcheting is destructive: keys for nodes
    already passed are erased and cannot be derived again.

    A PrivateState must not be ratcheted and used for decryption from two
    threads at once; no locking is done here.
    """
    def __init__(self, pubkey, frontier):
        if len(frontier) == 0:
            raise ValueError("Invalid Input: frontier cannot be empty")
        if len(frontier) > (DEPTH + 1):
            raise ValueError("Invalid Input: frontier holds more than %d "
                             "keys" % (DEPTH + 1))
        self.pubkey = pubkey
        self.frontier = frontier
        self.current = frontier[-1].address

    def address(self):
        return self.current

    def ratchet(self):
        nextAddress = self.current.successor()
        if nextAddress is None:
            raise Exhausted()
        # derive before popping so a failed derivation leaves the state intact
        children = None
        if not self.current.isLeaf():
            children = self.pubkey.Der(self.current, self.frontier[-1])
        secret = self.frontier.pop()
        if children is not None:
            left, right = children
            # left on top, it is the next node in preorder
            self.frontier.append(right)
            self.frontier.append(left)
        secret.erase()
        self.current = nextAddress
        assert self.frontier[-1].address == self.current
        log.debug("ratcheted private state to %s, %d keys in frontier",
                  str(self.current), len(self.frontier))

    def ratchetTo(self, address):
        """ratchetTo advances directly to a later address, deriving only the
        keys along the way and erasing every key for the nodes skipped
        """
        if address == self.current:
            return
        if address.toNumbering() < self.current.toNumbering():
            raise ValueError("Cannot ratchet back from %s to %s" %
                             (str(self.current), str(address)))
        while self.current != address:
            children = None
            if address.inSubtree(self.current):
                children = self.pubkey.Der(self.current, self.frontier[-1])
            secret = self.frontier.pop()
            if children is not None:
                left, right = children
                if address.inSubtree(left.address):
                    self.frontier.append(right)
                    self.frontier.append(left)
                else:
                    # everything left of the target is in the past
                    left.erase()
                    self.frontier.append(right)
            # otherwise the target lies past the whole subtree below current
            # and the next pending subtree root is already on the stack
            secret.erase()
            self.current = self.frontier[-1].address
        log.debug("ratcheted private state to %s, %d keys in frontier",
                  str(self.current), len(self.frontier))

    def decrypt(self, ciphertext):
        """decrypt recovers the payload. A ciphertext for any other address
        decrypts to unrelated bytes, there is no integrity check.
        """
        E = self.pubkey.Dec(self.current, self.frontier[-1],
                            ciphertext.hiddenKey)
        return _streamxor(kdf(self.pubkey, E, self.current),
                          ciphertext.payload)

    def publicState(self):
        return PublicState(self.pubkey, self.current)

    def _toDict(self):
        secrets = [self.pubkey.secretToDict(s) for s in self.frontier]
        return {'pubkey': self.pubkey.toDict(), 'secrets': secrets}

    def toJSON(self):
        return json.dumps(self._toDict())

    @staticmethod
    def fromJSON(privstateJ):
        privstate = json.loads(privstateJ)
        pubkey = BTEPublicKey.fromDict(privstate['pubkey'])
        frontier = [pubkey.secretFromDict(s) for s in privstate['secrets']]
        return PrivateState(pubkey, frontier)

    def toDER(self):
        encoder = asn1.Encoder()
        encoder.start()
        # enter privkey
        encoder.enter(asn1.Numbers.Sequence)
        self.pubkey.DEREncode(encoder)
        # enter secrets, bottom of the stack first
        encoder.enter(asn1.Numbers.Sequence)
        for s in self.frontier:
            self.pubkey.secretDEREncode(encoder, s)
        # leave secrets
        encoder.leave()
        # leave privkey
        encoder.leave()
        return encoder.output()

    @staticmethod
    def fromDER(privstateD):
        decoder = asn1.Decoder()
        decoder.start(privstateD)
        # enter privkey
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        pubkey = BTEPublicKey.parseDER(decoder)
        # enter secrets
        ensure_tag(decoder, asn1.Numbers.Sequence)
        decoder.enter()
        frontier = []
        tag = decoder.peek()
        while (tag is not None) and (tag.nr == asn1.Numbers.Sequence):
            frontier.append(pubkey.secretParseDER(decoder))
            tag = decoder.peek()
        # leave secrets
        decoder.leave()
        # leave privkey
        decoder.leave()
        if decoder.eof() is not True:
            raise ValueError("DER Content beyond expected EOF")
        return PrivateState(pubkey, frontier)


def generateKeypair(qbits=DEFAULT_QBITS, rbits=DEFAULT_RBITS):
    """generateKeypair creates a new key pair, with both states at the root
    of the tree
    """
    pubkey, rootSecret = BTEPublicKey.Gen(qbits, rbits)
    return (PublicState(pubkey, ROOT), PrivateState(pubkey, [rootSecret]))
