"""
Code generation utilities

Provides helpers for generating Python binding code.
"""

import keyword

# Names generated code already uses for its own purposes
RESERVED_NAMES = {'self', 'this', 'abi', 'ctypes', 'ok__', 'err', 'result__', 'callback__'}


class CodeGen:
    """Code generation helper with indentation support"""

    def __init__(self):
        self._lines: list[str] = []
        self._indent: int = 0
        self._indent_str: str = '    '  # 4 spaces

    def line(self, text: str = ''):
        """Add a line with current indentation"""
        if text:
            self._lines.append(self._indent_str * self._indent + text)
        else:
            self._lines.append('')

    def lines(self, *texts: str):
        """Add multiple lines"""
        for text in texts:
            self.line(text)

    def fragment(self, text: str):
        """Splice a multi-line fragment at the current indentation"""
        for text_line in text.split('\n'):
            self.line(text_line)

    def indent(self):
        """Increase indentation"""
        self._indent += 1

    def dedent(self):
        """Decrease indentation"""
        if self._indent > 0:
            self._indent -= 1

    def block(self, header: str):
        """Context manager for an indented suite"""
        return _BlockContext(self, header)

    def output(self) -> str:
        """Get generated code as string"""
        return '\n'.join(self._lines)


class _BlockContext:
    """Context manager for indented code blocks"""

    def __init__(self, gen: CodeGen, header: str):
        self._gen = gen
        self._header = header

    def __enter__(self):
        self._gen.line(self._header)
        self._gen.indent()
        return self

    def __exit__(self, *args):
        self._gen.dedent()


def param_name(name: str) -> str:
    """Python-safe parameter name

    Examples:
        lambda -> lambda_
        self -> self_
        pbstrDomain -> pbstrDomain
    """
    if keyword.iskeyword(name) or name in RESERVED_NAMES:
        return name + '_'
    return name


def call(target: str, args: list[str]) -> str:
    """Render a call expression"""
    return f'{target}({", ".join(args)})'
