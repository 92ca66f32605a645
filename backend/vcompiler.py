#!/usr/bin/env python3
"""
vcompiler.py
Line translator for the V assignment language (line gate → lexer → LL(1)
parser → semantic checks → TAC IR → assembly → peephole optimizer →
pseudo-binary target code).

Every V line is translated on its own. A CompilerSession owns the temp
counter and the assembly buffer, so the caller decides when they reset.
"""

import argparse
import logging
import re
import sys
from collections import namedtuple
from itertools import groupby

logger = logging.getLogger(__name__)

# =====================================================
# ERRORS AND STAGE RESULTS
# =====================================================
class Diagnostic(namedtuple('Diagnostic', ['phase', 'kind', 'message'])):
    """A classified, line-fatal error. phase is Lexical, Syntax or Semantic."""
    __slots__ = ()

    def __str__(self):
        return f"{self.phase} error: {self.message}"


class StageResult(namedtuple('StageResult', ['value', 'error'])):
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None


def success(value=None):
    return StageResult(value, None)


def failure(phase, kind, message):
    return StageResult(None, Diagnostic(phase, kind, message))


class IRGenerationError(Exception):
    """Raised when the IR generator is handed a sequence the parser would reject."""

# =====================================================
# LINE GATE
# =====================================================
MISSPELLED_KEYWORDS = ('WRITEE',)
INVALID_SYMBOLS = ('%', '$', '&', '<', '>')
ILLEGAL_OPERATOR_PAIRS = ('+*', '-/', '*/', '*+')
DIGIT_RE = re.compile(r'[0-9]')

def _first_in(line, candidates):
    for c in candidates:
        if c in line:
            return c
    return None

def check_line(line):
    """
    Reject a raw line for forbidden patterns before it is lexed.
    Returns the Diagnostic of the first rule that matches, or None.
    The rule order is fixed: misspelled keyword, invalid symbol, illegal
    operator pair, trailing semicolon, digit.
    """
    found = _first_in(line, MISSPELLED_KEYWORDS)
    if found:
        return Diagnostic('Lexical', 'MisspelledKeyword', f"misspelled keyword '{found}'")
    found = _first_in(line, INVALID_SYMBOLS)
    if found:
        return Diagnostic('Semantic', 'InvalidSymbol', f"invalid symbol '{found}'")
    found = _first_in(line, ILLEGAL_OPERATOR_PAIRS)
    if found:
        return Diagnostic('Syntax', 'IllegalOperatorCombination',
                          f"illegal operator combination '{found}'")
    if line.strip().endswith(';'):
        return Diagnostic('Syntax', 'TrailingSemicolon', "semicolon at end not allowed")
    mo = DIGIT_RE.search(line)
    if mo:
        return Diagnostic('Syntax', 'NumericLiteral', f"numbers not allowed '{mo.group()}'")
    return None

# =====================================================
# LEXER
# =====================================================
Token = namedtuple('Token', ['type', 'value'])

KEYWORDS = {'BEGIN', 'INTEGER', 'LET', 'INPUT', 'WRITE', 'END'}

class Lexer:
    token_specification = [
        ("WORD",      r'[^\W\d_]+'),    # letter candidates, narrowed in _words
        ("OPERATOR",  r'[+\-*/]'),
        ("SYMBOL",    r'='),
        ("SEPARATOR", r','),
        ("SKIP",      r'\s+'),
        ("UNKNOWN",   r'.'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n, p in token_specification)
    master_re = re.compile(tok_regex, re.DOTALL)

    def __init__(self, line):
        self.line = line
        self.tokens = []
        self._tokenize()

    def _tokenize(self):
        logger.debug("Performing Lexical Analysis...")
        for mo in self.master_re.finditer(self.line):
            kind = mo.lastgroup
            val = mo.group()
            if kind == "WORD":
                self._words(val)
            elif kind == "SKIP":
                pass
            else:
                self.tokens.append(Token(kind, val))

    def _words(self, val):
        # \w also admits non-letters such as '²' or 'Ⅷ'; only isalpha runs are words
        for is_letter, run in groupby(val, key=str.isalpha):
            run = ''.join(run)
            if not is_letter:
                self.tokens.extend(Token('UNKNOWN', ch) for ch in run)
            # single letters are always identifiers, even 'LET'-like spellings
            elif len(run) > 1 and run in KEYWORDS:
                self.tokens.append(Token('KEYWORD', run))
            else:
                self.tokens.append(Token('IDENTIFIER', run))

    def peek_all(self):
        return list(self.tokens)

# =====================================================
# PARSER (recursive-descent, LL(1), validation only)
# =====================================================
class Parser:
    """
    Validates one assignment:

        assignment := [LET] IDENTIFIER '=' expression
        expression := factor { OPERATOR factor }
        factor     := IDENTIFIER

    No tree is built; parse() returns a StageResult holding the number of
    consumed tokens, or a Syntax diagnostic.
    """

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return Token('EOF', '')

    def advance(self):
        tok = self.peek()
        self.pos += 1
        return tok

    def check(self, ttype, value=None):
        tok = self.peek()
        return tok.type == ttype and (value is None or tok.value == value)

    def expect(self, ttype, msg, value=None):
        if self.check(ttype, value):
            return success(self.advance())
        return failure('Syntax', 'Grammar', msg)

    def parse(self):
        logger.debug("Performing Syntax Analysis...")
        self.pos = 0
        if self.check('KEYWORD', 'LET'):
            self.advance()
        res = self.expect('IDENTIFIER', "expected identifier in assignment")
        if not res.ok:
            return res
        res = self.expect('SYMBOL', "expected '=' in assignment", value='=')
        if not res.ok:
            return res
        res = self.expression()
        if not res.ok:
            return res
        if self.pos < len(self.tokens):
            return failure('Syntax', 'Grammar', "unexpected tokens after valid assignment expression")
        return success(self.pos)

    def expression(self):
        res = self.factor()
        while res.ok and self.check('OPERATOR'):
            self.advance()
            res = self.factor()
        return res

    def factor(self):
        return self.expect('IDENTIFIER', "expected identifier in expression")

# =====================================================
# SEMANTIC ANALYZER
# =====================================================
IDENTIFIER_RE = re.compile(r'[A-Za-z]+')

class SemanticAnalyzer:
    def analyze(self, tokens):
        logger.debug("Performing Semantic Analysis...")
        for tok in tokens:
            if tok.type == 'IDENTIFIER' and not IDENTIFIER_RE.fullmatch(tok.value):
                return failure('Semantic', 'InvalidIdentifier', f"invalid identifier: {tok.value}")
            if tok.type == 'UNKNOWN':
                return failure('Semantic', 'UnknownToken', f"unknown token encountered: {tok.value}")
        return success(tokens)

# =====================================================
# IR (TAC) GENERATION
# =====================================================
class TACInstruction:
    """Either `dest = arg1 op arg2` or the copy `dest = arg1` (op is None)."""

    def __init__(self, dest, arg1, op=None, arg2=None):
        self.dest = dest
        self.arg1 = arg1
        self.op = op
        self.arg2 = arg2

    @property
    def is_copy(self):
        return self.op is None

    def __repr__(self):
        if self.is_copy:
            return f"{self.dest} = {self.arg1}"
        return f"{self.dest} = {self.arg1} {self.op} {self.arg2}"

    __str__ = __repr__

    def __eq__(self, other):
        if not isinstance(other, TACInstruction):
            return NotImplemented
        return repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))


PRECEDENCE = {'*': 2, '/': 2, '+': 1, '-': 1}

def precedence(op):
    return PRECEDENCE.get(op, 0)

def infix_to_postfix(tokens):
    """Shunting-Yard over identifiers and operators; equal precedence pops first (left associative)."""
    output = []
    op_stack = []
    for tok in tokens:
        if tok.type == 'IDENTIFIER':
            output.append(tok)
        elif tok.type == 'OPERATOR':
            while op_stack and precedence(op_stack[-1].value) >= precedence(tok.value):
                output.append(op_stack.pop())
            op_stack.append(tok)
    while op_stack:
        output.append(op_stack.pop())
    return output

class IRGenerator:
    def __init__(self, session):
        self.session = session
        self.tac = []

    def split_assignment(self, tokens):
        pos = 0
        if pos < len(tokens) and tokens[pos].type == 'KEYWORD' and tokens[pos].value == 'LET':
            pos += 1
        if pos >= len(tokens):
            raise IRGenerationError("missing left-hand side identifier")
        # skip the '=' after the identifier
        return tokens[pos].value, tokens[pos + 2:]

    def gen(self, tokens):
        logger.debug("Generating Intermediate Code Representation...")
        self.tac = []
        lhs, expr_tokens = self.split_assignment(tokens)
        stack = []
        for tok in infix_to_postfix(expr_tokens):
            if tok.type == 'IDENTIFIER':
                stack.append(tok.value)
                continue
            if len(stack) < 2:
                raise IRGenerationError(f"operand stack underflow at operator {tok.value!r}")
            op2 = stack.pop()
            op1 = stack.pop()
            dest = self.session.new_temp()
            self.tac.append(TACInstruction(dest, op1, tok.value, op2))
            stack.append(dest)
        if stack:
            self.tac.append(TACInstruction(lhs, stack.pop()))
        return self.tac

# =====================================================
# CODE GENERATION (assembly-like mnemonics)
# =====================================================
class CodeGenerator:
    """Appends LDA/OPER/STR/MOV records for each TAC line to the session buffer."""

    def __init__(self, session):
        self.session = session

    def gen(self, tac):
        logger.debug("Generating Code (Assembly)...")
        asm = self.session.assembly
        for instr in tac:
            text = str(instr)
            if ' = ' not in text:
                continue
            parts = text.split(' = ')
            target = parts[0].strip()
            expr = parts[1].strip()
            if ' ' not in expr:
                asm.append(f"MOV {expr} TO {target}")
                continue
            words = expr.split(' ')
            if len(words) == 3:
                op1, operator, op2 = (w.strip() for w in words)
                asm.append(f"LDA {op1}")
                asm.append(f"OPER {operator}")
                asm.append(f"LDA {op2}")
                asm.append(f"STR {target}")
            else:
                asm.append(f"STR {target} from {expr}")
        return asm

# =====================================================
# OPTIMIZER: adjacent duplicate elimination
# =====================================================
def optimize_assembly(asm):
    optimized = []
    prev = None
    for ins in asm:
        if ins != prev:
            optimized.append(ins)
        prev = ins
    return optimized

# =====================================================
# TARGET MACHINE CODE (pseudo-binary)
# =====================================================
def to_binary(instruction):
    """8-bit pattern of the first character of every word, space separated."""
    return ' '.join(format(ord(word[0]), '08b') for word in instruction.split() if word)

def encode_target(asm):
    logger.debug("Generating Target Machine Code...")
    return [to_binary(ins) for ins in asm]

# =====================================================
# SESSION AND PIPELINE
# =====================================================
class LineResult:
    def __init__(self, source, lineno=None, status='compiled'):
        self.lineno = lineno
        self.source = source
        self.status = status       # 'compiled' | 'error' | 'skipped'
        self.error = None
        self.failed_stage = None   # 'gate' | 'parser' | 'semantic'
        self.tokens = []
        self.tac = []
        self.asm = []
        self.optimized_asm = []
        self.binary = []

    @property
    def ok(self):
        return self.status != 'error'

    def fail(self, stage, diagnostic):
        self.status = 'error'
        self.failed_stage = stage
        self.error = diagnostic
        logger.info("line %s rejected by %s: %s", self.lineno, stage, diagnostic)
        return self

    def __repr__(self):
        return f"LineResult(lineno={self.lineno!r}, status={self.status!r}, error={self.error!r})"


class CompilerSession:
    """
    Holds the state shared by consecutive pipeline runs: the temporary
    counter (t1, t2, ... never restarts unless reset() is called) and the
    assembly buffer, which is cleared right before code generation of every
    line that passed parsing and semantic analysis.
    """

    def __init__(self):
        self.temp_count = 0
        self.assembly = []

    def new_temp(self):
        self.temp_count += 1
        return f"t{self.temp_count}"

    def clear_assembly(self):
        self.assembly = []

    def reset(self):
        self.temp_count = 0
        self.clear_assembly()

    def optimize(self):
        logger.debug("Optimizing Code...")
        self.assembly = optimize_assembly(self.assembly)
        return self.assembly

    def compile_line(self, line, lineno=None):
        result = LineResult(line, lineno)

        diag = check_line(line)
        if diag is not None:
            return result.fail('gate', diag)

        return self.translate(result, Lexer(line).peek_all())

    def translate(self, result, tokens):
        """Run parser through target encoder on an already gated and lexed line."""
        result.tokens = tokens

        parsed = Parser(tokens).parse()
        if not parsed.ok:
            return result.fail('parser', parsed.error)

        checked = SemanticAnalyzer().analyze(tokens)
        if not checked.ok:
            return result.fail('semantic', checked.error)

        result.tac = IRGenerator(self).gen(tokens)

        self.clear_assembly()
        result.asm = list(CodeGenerator(self).gen(result.tac))
        result.optimized_asm = list(self.optimize())
        result.binary = encode_target(self.assembly)
        return result

# =====================================================
# PROGRAM DRIVER
# =====================================================
def is_assignment_candidate(tokens):
    """Blank lines and statements led by BEGIN, INTEGER, INPUT, WRITE or END are not translated."""
    if not tokens:
        return False
    first = tokens[0]
    return not (first.type == 'KEYWORD' and first.value != 'LET')

def compile_program(lines, session=None):
    if session is None:
        session = CompilerSession()
    results = []
    for lineno, line in enumerate(lines, 1):
        logger.debug("Processing line %d: %s", lineno, line)
        result = LineResult(line, lineno)
        diag = check_line(line)
        if diag is not None:
            results.append(result.fail('gate', diag))
            continue
        tokens = Lexer(line).peek_all()
        if not is_assignment_candidate(tokens):
            result.status = 'skipped'
            results.append(result)
            continue
        results.append(session.translate(result, tokens))
    return results

def collect_errors(results):
    return [f"Line {r.lineno}: {r.error}" for r in results if r.status == 'error']

def compile_source(code, session=None):
    results = compile_program(code.strip().splitlines(), session)
    return {
        'lines': results,
        'errors': collect_errors(results),
    }

# =====================================================
# REPORT
# =====================================================
def _listing(out, title, items):
    out.append(title)
    for item in items:
        out.append(f"  {item}")

def format_report(results):
    out = []
    for r in results:
        out.append(f"Processing line {r.lineno}: {r.source}")
        if r.status == 'skipped':
            out.append("No errors detected. (This line cannot be processed)")
        elif r.failed_stage == 'gate':
            out.append(f"Error detected: {r.error}")
        else:
            _listing(out, "Lexical Analysis Tokens:", (f"[{t.type} : {t.value}]" for t in r.tokens))
            if r.failed_stage == 'parser':
                out.append(f"Syntax Analysis Error: {r.error.message}")
            else:
                out.append("Syntax Analysis: No Syntax Errors.")
                if r.failed_stage == 'semantic':
                    out.append(f"Semantic Analysis Error: {r.error.message}")
                else:
                    out.append("Semantic Analysis: No Semantic Errors.")
                    _listing(out, "Intermediate Code (Three-Address Code):", r.tac)
                    _listing(out, "Assembly Code:", r.asm)
                    _listing(out, "Optimized Assembly Code:", r.optimized_asm)
                    _listing(out, "Target Machine Code (Binary):", r.binary)
        out.append("")
    return "\n".join(out).rstrip("\n") + "\n" if out else ""

# =====================================================
# SAMPLE PROGRAM / CLI
# =====================================================
SAMPLE_PROGRAM = r'''
BEGIN
INTEGER A, B, C, E, M, N, G, H, I, a, c
INPUT A, B, C
LET B = A */ M
LET G = a + c
temp = <s%**h - j / w +d +*$&;
M = A/B+C
N = G/H-I+a*B/c
WRITE M
WRITEE F;
END
'''

def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    ap = argparse.ArgumentParser(prog="vcc", description="V line translator")
    ap.add_argument("source", nargs="?", help="V source file (defaults to the built-in sample program)")
    ap.add_argument("-v", "--verbose", action="store_true", help="log every compiler stage")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.source:
        try:
            with open(args.source, encoding="utf-8") as f:
                code = f.read()
        except OSError as e:
            print(f"Error: cannot read {args.source}: {e}", file=sys.stderr)
            return 2
    else:
        code = SAMPLE_PROGRAM

    result = compile_source(code)
    sys.stdout.write(format_report(result['lines']))
    return 1 if result['errors'] else 0

if __name__ == '__main__':
    sys.exit(main())
