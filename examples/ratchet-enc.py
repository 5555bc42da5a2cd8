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

from fsratchet.ratchet import PublicState, Exhausted
from argparse import ArgumentParser
import base64
import logging
import sys
import pypbc


desc = ('ratchet-enc encrypts a message for the current address of a forward '
        'secure ratcheting public key. A random target group element is '
        'hashed to an AES key for the message and encrypted for the tree '
        'address. Output is DER encoded and PEM-wrapped')

parser = ArgumentParser(description=desc)
parser.add_argument('pubkey', help='file path for file containing public key')
parser.add_argument('--ratchet', type=int, default=0, help='ratchet the public key forward this many times first (key file is rewritten)')
parser.add_argument('-f', '--file', default=None, help='read message plaintext from file instead of stdin')
parser.add_argument('-v', '--verbose', action='store_true', help='log progress to stderr')
clargs = parser.parse_args()

if clargs.verbose:
    logging.basicConfig(level=logging.DEBUG)

pypbc.set_point_format_compressed()

with open(clargs.pubkey, 'r') as keyfile:
    PEMkey=keyfile.read()
try:
    DERkey = base64.b64decode(PEMkey.split('-----')[2].encode())
    pubstate = PublicState.fromDER(DERkey)
except (IndexError, ValueError):
    sys.exit('Error: Unable to import public key, aborting.')

if clargs.ratchet > 0:
    try:
        for i in range(0, clargs.ratchet):
            pubstate.ratchet()
    except Exhausted:
        sys.exit('Error: Public key is exhausted, aborting.')
    with open(clargs.pubkey, 'w') as keyfile:
        keyfile.write('-----BEGIN RATCHET PUBLIC KEY-----\n' +
                      base64.b64encode(pubstate.toDER()).decode() + '\n' +
                      '-----END RATCHET PUBLIC KEY-----\n')

if clargs.file is None:
    message = sys.stdin.buffer.read()
else:
    with open(clargs.file, 'rb') as msgfile:
        message=msgfile.read()

if (message is None) or (len(message) == 0):
    sys.exit('Error: Plaintext length 0, aborting.')

ctext = pubstate.encrypt(message)

print('-----BEGIN RATCHET ENCRYPTED MESSAGE-----')
print(base64.b64encode(ctext.toDER(pubstate.pubkey)).decode())
print('-----END RATCHET ENCRYPTED MESSAGE-----')
