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

from fsratchet.ratchet import *
from fsratchet.treeaddress import TreeAddress, ROOT, MAX, DEPTH, NODE_COUNT

QBITS = 128
RBITS = 64

message = b"Hello, world!"


def keypair():
    return generateKeypair(QBITS, RBITS)


def test_keypair():
    pubstate, privstate = keypair()
    assert pubstate.address() == ROOT
    assert privstate.address() == ROOT
    assert len(privstate.frontier) == 1
    assert privstate.frontier[-1].address == ROOT
    assert privstate.publicState().address() == ROOT


def test_public_ratchet():
    pubstate, privstate = keypair()
    pubstate.ratchet()
    assert pubstate.address() == TreeAddress(1, 0)
    for i in range(0, 32):
        pubstate.ratchet()
    assert pubstate.address() == TreeAddress(32, 1)
    # public ratchets are reversible bookkeeping
    pubstate.ratchetTo(ROOT)
    assert pubstate.address() == ROOT


def test_private_ratchet():
    pubstate, privstate = keypair()
    privstate.ratchet()
    assert privstate.address() == TreeAddress(1, 0)
    for i in range(0, 32):
        privstate.ratchet()
    assert privstate.address() == TreeAddress(32, 1)


def test_frontier():
    pubstate, privstate = keypair()
    largest = len(privstate.frontier)
    for i in range(0, 80):
        popped = privstate.frontier[-1]
        privstate.ratchet()
        assert popped.isErased()
        assert privstate.frontier[-1].address == privstate.address()
        for s in privstate.frontier:
            assert not s.isErased()
        largest = max(largest, len(privstate.frontier))
        assert len(privstate.frontier) <= DEPTH + 1
    # the first leaf is reached with the whole left spine pending
    assert largest == DEPTH + 1


def test_message_roundtrip():
    pubstate, privstate = keypair()
    C = pubstate.encrypt(message)
    assert len(C.payload) == len(message)
    assert C.payload != message
    assert privstate.decrypt(C) == message
    pubstate.ratchet()
    privstate.ratchet()
    C = pubstate.encrypt(message)
    assert privstate.decrypt(C) == message
    for i in range(0, 32):
        pubstate.ratchet()
        privstate.ratchet()
    assert pubstate.address() == privstate.address()
    C = pubstate.encrypt(message)
    assert privstate.decrypt(C) == message
    C = pubstate.encrypt(b'')
    assert privstate.decrypt(C) == b''


def test_fresh_element_per_encryption():
    pubstate, privstate = keypair()
    C1 = pubstate.encrypt(message)
    C2 = pubstate.encrypt(message)
    assert C1.payload != C2.payload
    assert privstate.decrypt(C1) == privstate.decrypt(C2) == message


def test_public_key_too_advanced():
    pubstate, privstate = keypair()
    pubstate.ratchet()
    C = pubstate.encrypt(message)
    plain = privstate.decrypt(C)
    assert len(plain) == len(message)
    assert plain != message


def test_secret_key_too_advanced():
    pubstate, privstate = keypair()
    privstate.ratchet()
    C = pubstate.encrypt(message)
    plain = privstate.decrypt(C)
    assert len(plain) == len(message)
    assert plain != message


def test_forward_secrecy():
    pubstate, privstate = keypair()
    for i in range(0, 5):
        pubstate.ratchet()
        privstate.ratchet()
    old = pubstate.encrypt(message)
    assert privstate.decrypt(old) == message
    privstate.ratchet()
    # nothing left in the frontier is the key for the old address
    for s in privstate.frontier:
        assert s.address != pubstate.address()
    assert privstate.decrypt(old) != message


def test_ratchet_to():
    target = TreeAddress.fromNumbering(1000)
    pubstate, privstate = keypair()
    privstate.ratchetTo(target)
    pubstate.ratchetTo(target)
    assert privstate.address() == target
    assert privstate.frontier[-1].address == target
    assert len(privstate.frontier) <= DEPTH + 1
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    # continues like a step by step ratchet from here
    pubstate.ratchet()
    privstate.ratchet()
    assert privstate.address() == TreeAddress.fromNumbering(1001)
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    # current address is a no-op, earlier addresses cannot be reached
    privstate.ratchetTo(privstate.address())
    assert privstate.address() == TreeAddress.fromNumbering(1001)
    try:
        privstate.ratchetTo(target)
        assert False
    except ValueError:
        pass


def test_ratchet_to_right_subtree():
    target = ROOT.right().left().right()
    pubstate, privstate = keypair()
    privstate.ratchetTo(target)
    pubstate.ratchetTo(target)
    # only the right sibling of each node on the way down is kept
    assert [s.address for s in privstate.frontier] == \
        [ROOT.right().right(), target]
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    privstate.ratchetTo(ROOT.right().right())
    pubstate.ratchetTo(ROOT.right().right())
    assert len(privstate.frontier) == 1
    assert privstate.decrypt(pubstate.encrypt(message)) == message


def test_ratchet_to_matches_steps():
    pubstate, privstate = keypair()
    stepped = PrivateState.fromDER(privstate.toDER())
    for i in range(0, 40):
        stepped.ratchet()
    privstate.ratchetTo(stepped.address())
    assert [s.address for s in privstate.frontier] == \
        [s.address for s in stepped.frontier]
    pubstate.ratchetTo(stepped.address())
    C = pubstate.encrypt(message)
    assert privstate.decrypt(C) == stepped.decrypt(C) == message


def test_private_ratchet_to_max():
    pubstate, privstate = keypair()
    last = TreeAddress.fromNumbering(NODE_COUNT - 2)
    privstate.ratchetTo(last)
    pubstate.ratchetTo(last)
    assert privstate.frontier[-1].address == last
    assert len(privstate.frontier) == 2
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    # the last leaf step pops the leaf and exposes the pending key for MAX
    privstate.ratchet()
    pubstate.ratchet()
    assert privstate.address() == MAX
    assert pubstate.address() == MAX
    assert [s.address for s in privstate.frontier] == [MAX]
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    frontier = privstate.frontier[:]
    try:
        privstate.ratchet()
        assert False
    except Exhausted:
        pass
    try:
        pubstate.ratchet()
        assert False
    except Exhausted:
        pass
    assert privstate.address() == MAX
    assert privstate.frontier == frontier
    assert not privstate.frontier[-1].isErased()
    assert privstate.decrypt(pubstate.encrypt(message)) == message


def test_failed_derivation_keeps_state():
    pubstate, privstate = keypair()
    privstate.ratchet()
    frontier = privstate.frontier[:]
    current = privstate.address()

    def failingDer(address, secret):
        raise RuntimeError("no randomness")

    privstate.pubkey.Der = failingDer
    try:
        privstate.ratchet()
        assert False
    except RuntimeError:
        pass
    try:
        privstate.ratchetTo(TreeAddress.fromNumbering(1000))
        assert False
    except RuntimeError:
        pass
    del privstate.pubkey.Der
    assert privstate.address() == current
    assert privstate.frontier == frontier
    assert not privstate.frontier[-1].isErased()
    pubstate.ratchet()
    assert privstate.decrypt(pubstate.encrypt(message)) == message
    privstate.ratchet()
    pubstate.ratchet()
    assert privstate.decrypt(pubstate.encrypt(message)) == message


def test_empty_frontier():
    try:
        PrivateState(None, [])
        assert False
    except ValueError:
        pass


if __name__ == '__main__':
    test_keypair()
    test_public_ratchet()
    test_private_ratchet()
    test_frontier()
    test_message_roundtrip()
    test_fresh_element_per_encryption()
    test_public_key_too_advanced()
    test_secret_key_too_advanced()
    test_forward_secrecy()
    test_ratchet_to()
    test_ratchet_to_right_subtree()
    test_ratchet_to_matches_steps()
    test_private_ratchet_to_max()
    test_failed_derivation_keeps_state()
    test_empty_frontier()
    print("all tests passed")
