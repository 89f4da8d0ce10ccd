"""
Halyard bash adapter.

generate() renders the protocol script: every TAB re-invokes the program
through the hidden request command and interprets the trailing directive.
generate_legacy() renders the older self-contained script, where command
names, flags and nouns are baked in and only registered completers call back
into the program.
"""
from .completions import (
    ACTIVE_HELP_MARKER,
    COMPLETE_NO_DESC_REQUEST,
    COMPLETE_REQUEST,
    ScriptTemplate,
    active_help_variable,
    directive_values,
)
from .flags import *
from .utils import *


_PROTOCOL = ScriptTemplate(r"""# bash completion V2 for @{NAME}                             -*- shell-script -*-

__@{VARNAME}_debug()
{
    if [[ -n ${BASH_COMP_DEBUG_FILE-} ]]; then
        echo "$*" >> "${BASH_COMP_DEBUG_FILE}"
    fi
}

# Minimal stand-in for _init_completion when bash-completion is missing.
__@{VARNAME}_init_completion()
{
    COMPREPLY=()
    _get_comp_words_by_ref "$@" cur prev words cword
}

# Asks the program for completions; fills the 'out' and 'directive' variables.
__@{VARNAME}_get_completion_results() {
    local requestComp lastParam lastChar args

    # ${words[0]} keeps aliases of the program working.
    args=("${words[@]:1}")
    requestComp="${words[0]} @{REQUEST} ${args[*]}"

    lastParam=${words[$((${#words[@]}-1))]}
    lastChar=${lastParam:$((${#lastParam}-1)):1}
    __@{VARNAME}_debug "lastParam ${lastParam}, lastChar ${lastChar}"

    if [[ -z ${cur} && ${lastChar} != = ]]; then
        # The last word is complete; an empty argument says so to the program.
        __@{VARNAME}_debug "Adding extra empty parameter"
        requestComp="${requestComp} ''"
    fi

    # bash only sees the text after '=' in --flag=value.
    if [[ ${cur} == -*=* ]]; then
        cur="${cur#*=}"
    fi

    __@{VARNAME}_debug "Calling ${requestComp}"
    out=$(eval "${requestComp}" 2>/dev/null)

    # The directive follows the last colon.
    directive=${out##*:}
    out=${out%:*}
    if [[ ${directive} == "${out}" ]]; then
        directive=0
    fi
    __@{VARNAME}_debug "The completion directive is: ${directive}"
    __@{VARNAME}_debug "The completions are: ${out}"
}

__@{VARNAME}_process_completion_results() {
    local shellCompDirectiveError=@{ERROR}
    local shellCompDirectiveNoSpace=@{NO_SPACE}
    local shellCompDirectiveNoFileComp=@{NO_FILE_COMP}
    local shellCompDirectiveFilterFileExt=@{FILTER_FILE_EXT}
    local shellCompDirectiveFilterDirs=@{FILTER_DIRS}
    local shellCompDirectiveKeepOrder=@{KEEP_ORDER}

    if (((directive & shellCompDirectiveError) != 0)); then
        __@{VARNAME}_debug "Received error from the completion request"
        return
    else
        if (((directive & shellCompDirectiveNoSpace) != 0)); then
            if [[ $(type -t compopt) == builtin ]]; then
                __@{VARNAME}_debug "Activating no space"
                compopt -o nospace
            else
                __@{VARNAME}_debug "No space directive not supported in this version of bash"
            fi
        fi
        if (((directive & shellCompDirectiveKeepOrder) != 0)); then
            if [[ $(type -t compopt) == builtin ]]; then
                # nosort needs bash 4.4
                if [[ ${BASH_VERSINFO[0]} -lt 4 || ( ${BASH_VERSINFO[0]} -eq 4 && ${BASH_VERSINFO[1]} -lt 4 ) ]]; then
                    __@{VARNAME}_debug "No sort directive not supported in this version of bash"
                else
                    __@{VARNAME}_debug "Activating keep order"
                    compopt -o nosort
                fi
            else
                __@{VARNAME}_debug "No sort directive not supported in this version of bash"
            fi
        fi
        if (((directive & shellCompDirectiveNoFileComp) != 0)); then
            if [[ $(type -t compopt) == builtin ]]; then
                __@{VARNAME}_debug "Activating no file completion"
                compopt +o default
            else
                __@{VARNAME}_debug "No file completion directive not supported in this version of bash"
            fi
        fi
    fi

    local completions=()
    local activeHelp=()
    __@{VARNAME}_extract_activeHelp

    if (((directive & shellCompDirectiveFilterFileExt) != 0)); then
        local fullFilter="" filter filteringCmd

        # Unquoted on purpose: newlines must split the list.
        for filter in ${completions[*]}; do
            fullFilter+="$filter|"
        done

        filteringCmd="_filedir $fullFilter"
        __@{VARNAME}_debug "File filtering command: $filteringCmd"
        $filteringCmd
    elif (((directive & shellCompDirectiveFilterDirs) != 0)); then
        local subdir
        subdir=${completions[0]}
        if [[ -n $subdir ]]; then
            __@{VARNAME}_debug "Listing directories in $subdir"
            pushd "$subdir" >/dev/null 2>&1 && _filedir -d && popd >/dev/null 2>&1 || return
        else
            __@{VARNAME}_debug "Listing directories in ."
            _filedir -d
        fi
    else
        __@{VARNAME}_handle_completion_types
    fi

    __@{VARNAME}_handle_special_char "$cur" :
    __@{VARNAME}_handle_special_char "$cur" =

    __@{VARNAME}_handle_activeHelp
}

__@{VARNAME}_handle_activeHelp() {
    if ((${#activeHelp[*]} != 0)); then
        if [ -z "$COMP_TYPE" ]; then
            # bash 3 has no COMP_TYPE
            printf "\n";
            printf "%s\n" "${activeHelp[@]}"
            printf "\n"
            __@{VARNAME}_reprint_commandLine
            return
        fi

        # Hints are shown on the second TAB.
        if [ "$COMP_TYPE" -eq 63 ]; then
            printf "\n"
            printf "%s\n" "${activeHelp[@]}"

            if ((${#COMPREPLY[*]} == 0)); then
                # Let file completion fill COMPREPLY so we know whether the shell reprints the line.
                if (((directive & shellCompDirectiveNoFileComp) == 0)); then
                    __@{VARNAME}_debug "Listing files"
                    _filedir
                fi
            fi

            if ((${#COMPREPLY[*]} != 0)); then
                printf -- "--"
            else
                __@{VARNAME}_reprint_commandLine
            fi
        elif [ "$COMP_TYPE" -eq 37 ] || [ "$COMP_TYPE" -eq 42 ]; then
            printf "\n"
            printf "%s\n" "${activeHelp[@]}"

            __@{VARNAME}_reprint_commandLine
        fi
    fi
}

__@{VARNAME}_reprint_commandLine() {
    # The prompt expansion needs bash 4.4.
    if (x=${PS1@P}) 2> /dev/null; then
        printf "%s" "${PS1@P}${COMP_LINE[@]}"
    else
        printf "%s" "${COMP_LINE[@]}"
    fi
}

# Splits $out into the $activeHelp and $completions arrays.
__@{VARNAME}_extract_activeHelp() {
    local activeHelpMarker="@{MARKER}"
    local endIndex=${#activeHelpMarker}

    while IFS='' read -r comp; do
        [[ -z $comp ]] && continue

        if [[ ${comp:0:endIndex} == $activeHelpMarker ]]; then
            comp=${comp:endIndex}
            __@{VARNAME}_debug "ActiveHelp found: $comp"
            if [[ -n $comp ]]; then
                activeHelp+=("$comp")
            fi
        else
            completions+=("$comp")
        fi
    done <<<"${out}"
}

__@{VARNAME}_handle_completion_types() {
    __@{VARNAME}_debug "__@{VARNAME}_handle_completion_types: COMP_TYPE is $COMP_TYPE"

    case $COMP_TYPE in
    37|42)
        # menu-complete and insert-completions insert the values directly: drop descriptions.
        (( ${#completions[@]} == 0 )) && return 0

        local tab=$'\t'

        IFS=$'\n' read -ra completions -d '' < <(printf "%q\n" "${completions[@]%%$tab*}")

        IFS=$'\n' read -ra COMPREPLY -d '' < <(IFS=$'\n'; compgen -W "${completions[*]}" -- "${cur}")

        # compgen drops the escaping
        IFS=$'\n' read -ra COMPREPLY -d '' < <(printf "%q\n" "${COMPREPLY[@]}")
        ;;

    *)
        __@{VARNAME}_handle_standard_completion_case
        ;;
    esac
}

__@{VARNAME}_handle_standard_completion_case() {
    local tab=$'\t'

    (( ${#completions[@]} == 0 )) && return 0

    if [[ "${completions[*]}" != *$tab* ]]; then
        IFS=$'\n' read -ra completions -d '' < <(printf "%q\n" "${completions[@]}")
        IFS=$'\n' read -ra COMPREPLY -d '' < <(IFS=$'\n'; compgen -W "${completions[*]}" -- "${cur}")

        # A single match is inserted on the command line and needs escaping again.
        if (( ${#COMPREPLY[@]} == 1 )); then
            COMPREPLY[0]=$(printf "%q" "${COMPREPLY[0]}")
        fi
        return 0
    fi

    local longest=0
    local compline
    while IFS='' read -r compline; do
        [[ -z $compline ]] && continue

        printf -v comp "%q" "${compline%%$tab*}" &>/dev/null || comp=$(printf "%q" "${compline%%$tab*}")

        [[ $comp == "$cur"* ]] || continue

        COMPREPLY+=("$compline")

        comp=${compline%%$tab*}
        if ((${#comp}>longest)); then
            longest=${#comp}
        fi
    done < <(printf "%s\n" "${completions[@]}")

    if ((${#COMPREPLY[*]} == 1)); then
        __@{VARNAME}_debug "COMPREPLY[0]: ${COMPREPLY[0]}"
        COMPREPLY[0]=$(printf "%q" "${COMPREPLY[0]%%$tab*}")
        __@{VARNAME}_debug "Removed description from single completion, which is now: ${COMPREPLY[0]}"
    else
        __@{VARNAME}_format_comp_descriptions $longest
    fi
}

__@{VARNAME}_handle_special_char()
{
    local comp="$1"
    local char=$2
    if [[ "$comp" == *${char}* && "$COMP_WORDBREAKS" == *${char}* ]]; then
        local word=${comp%"${comp##*${char}}"}
        local idx=${#COMPREPLY[*]}
        while ((--idx >= 0)); do
            COMPREPLY[idx]=${COMPREPLY[idx]#"$word"}
        done
    fi
}

__@{VARNAME}_format_comp_descriptions()
{
    local tab=$'\t'
    local comp desc maxdesclength
    local longest=$1

    local i ci
    for ci in ${!COMPREPLY[*]}; do
        comp=${COMPREPLY[ci]}
        if [[ "$comp" == *$tab* ]]; then
            __@{VARNAME}_debug "Original comp: $comp"
            desc=${comp#*$tab}
            comp=${comp%%$tab*}

            # two spaces and two parentheses surround the description
            maxdesclength=$(( COLUMNS - longest - 4 ))

            if ((maxdesclength > 8)); then
                for ((i = ${#comp} ; i < longest ; i++)); do
                    comp+=" "
                done
            else
                maxdesclength=$(( COLUMNS - ${#comp} - 4 ))
            fi

            if ((maxdesclength > 0)); then
                if ((${#desc} > maxdesclength)); then
                    desc=${desc:0:$(( maxdesclength - 1 ))}
                    desc+="…"
                fi
                comp+="  ($desc)"
            fi
            COMPREPLY[ci]=$comp
            __@{VARNAME}_debug "Final comp: $comp"
        fi
    done
}

__start_@{VARNAME}()
{
    local cur prev words cword split

    COMPREPLY=()

    if declare -F _init_completion >/dev/null 2>&1; then
        _init_completion -n =: || return
    else
        __@{VARNAME}_init_completion -n =: || return
    fi

    __@{VARNAME}_debug
    __@{VARNAME}_debug "========= starting completion logic =========="
    __@{VARNAME}_debug "cur is ${cur}, words[*] is ${words[*]}, #words[@] is ${#words[@]}, cword is $cword"

    # The cursor may sit before the end of the line.
    words=("${words[@]:0:$cword+1}")
    __@{VARNAME}_debug "Truncated words[*]: ${words[*]},"

    local out directive
    __@{VARNAME}_get_completion_results
    __@{VARNAME}_process_completion_results
}

if [[ $(type -t compopt) = "builtin" ]]; then
    complete -o default -F __start_@{VARNAME} @{NAME}
else
    complete -o default -o nospace -F __start_@{VARNAME} @{NAME}
fi

# ex: ts=4 sw=4 et filetype=sh
""")


_PREAMBLE = ScriptTemplate(r"""# bash completion for @{NAME}                                -*- shell-script -*-

__@{VARNAME}_debug()
{
    if [[ -n ${BASH_COMP_DEBUG_FILE:-} ]]; then
        echo "$*" >> "${BASH_COMP_DEBUG_FILE}"
    fi
}

# Minimal stand-in for _init_completion when bash-completion is missing.
__@{VARNAME}_init_completion()
{
    COMPREPLY=()
    _get_comp_words_by_ref "$@" cur prev words cword
}

__@{VARNAME}_index_of_word()
{
    local w word=$1
    shift
    index=0
    for w in "$@"; do
        [[ $w = "$word" ]] && return
        index=$((index+1))
    done
    index=-1
}

__@{VARNAME}_contains_word()
{
    local w word=$1; shift
    for w in "$@"; do
        [[ $w = "$word" ]] && return
    done
    return 1
}

__@{VARNAME}_handle_program_completion()
{
    __@{VARNAME}_debug "${FUNCNAME[0]}: cur is ${cur}, words[*] is ${words[*]}, #words[@] is ${#words[@]}"

    local shellCompDirectiveError=@{ERROR}
    local shellCompDirectiveNoSpace=@{NO_SPACE}
    local shellCompDirectiveNoFileComp=@{NO_FILE_COMP}
    local shellCompDirectiveFilterFileExt=@{FILTER_FILE_EXT}
    local shellCompDirectiveFilterDirs=@{FILTER_DIRS}

    local out requestComp lastParam lastChar comp directive args

    # ${words[0]} keeps aliases of the program working.
    args=("${words[@]:1}")
    # This script cannot display hints.
    requestComp="@{ACTIVE_HELP}=0 ${words[0]} @{REQUEST} ${args[*]}"

    lastParam=${words[$((${#words[@]}-1))]}
    lastChar=${lastParam:$((${#lastParam}-1)):1}
    __@{VARNAME}_debug "${FUNCNAME[0]}: lastParam ${lastParam}, lastChar ${lastChar}"

    if [ -z "${cur}" ] && [ "${lastChar}" != "=" ]; then
        __@{VARNAME}_debug "${FUNCNAME[0]}: Adding extra empty parameter"
        requestComp="${requestComp} \"\""
    fi

    __@{VARNAME}_debug "${FUNCNAME[0]}: calling ${requestComp}"
    out=$(eval "${requestComp}" 2>/dev/null)

    directive=${out##*:}
    out=${out%:*}
    if [ "${directive}" = "${out}" ]; then
        directive=0
    fi
    __@{VARNAME}_debug "${FUNCNAME[0]}: the completion directive is: ${directive}"
    __@{VARNAME}_debug "${FUNCNAME[0]}: the completions are: ${out}"

    if [ $((directive & shellCompDirectiveError)) -ne 0 ]; then
        __@{VARNAME}_debug "${FUNCNAME[0]}: received error from the completion request"
        return
    else
        if [ $((directive & shellCompDirectiveNoSpace)) -ne 0 ]; then
            if [[ $(type -t compopt) = "builtin" ]]; then
                __@{VARNAME}_debug "${FUNCNAME[0]}: activating no space"
                compopt -o nospace
            fi
        fi
        if [ $((directive & shellCompDirectiveNoFileComp)) -ne 0 ]; then
            if [[ $(type -t compopt) = "builtin" ]]; then
                __@{VARNAME}_debug "${FUNCNAME[0]}: activating no file completion"
                compopt +o default
            fi
        fi
    fi

    if [ $((directive & shellCompDirectiveFilterFileExt)) -ne 0 ]; then
        local fullFilter filter filteringCmd
        for filter in ${out}; do
            fullFilter+="$filter|"
        done

        filteringCmd="_filedir $fullFilter"
        __@{VARNAME}_debug "File filtering command: $filteringCmd"
        $filteringCmd
    elif [ $((directive & shellCompDirectiveFilterDirs)) -ne 0 ]; then
        local subdir
        subdir=$(printf "%s" "${out}")
        if [ -n "$subdir" ]; then
            __@{VARNAME}_debug "Listing directories in $subdir"
            __@{VARNAME}_handle_subdirs_in_dir_flag "$subdir"
        else
            __@{VARNAME}_debug "Listing directories in ."
            _filedir -d
        fi
    else
        while IFS='' read -r comp; do
            COMPREPLY+=("$comp")
        done < <(compgen -W "${out}" -- "$cur")
    fi
}

__@{VARNAME}_handle_reply()
{
    __@{VARNAME}_debug "${FUNCNAME[0]}"
    local comp
    case $cur in
        -*)
            if [[ $(type -t compopt) = "builtin" ]]; then
                compopt -o nospace
            fi
            local allflags
            if [ ${#must_have_one_flag[@]} -ne 0 ]; then
                allflags=("${must_have_one_flag[@]}")
            else
                allflags=("${flags[*]} ${two_word_flags[*]}")
            fi
            while IFS='' read -r comp; do
                COMPREPLY+=("$comp")
            done < <(compgen -W "${allflags[*]}" -- "$cur")
            if [[ $(type -t compopt) = "builtin" ]]; then
                [[ "${COMPREPLY[0]}" == *= ]] || compopt +o nospace
            fi

            # complete after --flag=abc
            if [[ $cur == *=* ]]; then
                if [[ $(type -t compopt) = "builtin" ]]; then
                    compopt +o nospace
                fi

                local index flag
                flag="${cur%%=*}"
                __@{VARNAME}_index_of_word "${flag}" "${flags_with_completion[@]}"
                COMPREPLY=()
                if [[ ${index} -ge 0 ]]; then
                    PREFIX=""
                    cur="${cur#*=}"
                    ${flags_completion[${index}]}
                    if [ -n "${ZSH_VERSION:-}" ]; then
                        # zsh wants the --flag= prefix back
                        eval "COMPREPLY=( \"\${COMPREPLY[@]/#/${flag}=}\" )"
                    fi
                fi
            fi

            if [[ -z "${flag_parsing_disabled}" ]]; then
                # Without flag parsing the flags are unknown; fall through to the program.
                return 0;
            fi
            ;;
    esac

    local index
    __@{VARNAME}_index_of_word "${prev}" "${flags_with_completion[@]}"
    if [[ ${index} -ge 0 ]]; then
        ${flags_completion[${index}]}
        return
    fi

    # a flag value is being typed
    if [[ ${cur} != "${words[cword]}" ]]; then
        return
    fi

    local completions
    completions=("${commands[@]}")
    if [[ ${#must_have_one_noun[@]} -ne 0 ]]; then
        completions+=("${must_have_one_noun[@]}")
    elif [[ -n "${has_completion_function}" ]]; then
        __@{VARNAME}_handle_program_completion
    fi
    if [[ ${#must_have_one_flag[@]} -ne 0 ]]; then
        completions+=("${must_have_one_flag[@]}")
    fi
    while IFS='' read -r comp; do
        COMPREPLY+=("$comp")
    done < <(compgen -W "${completions[*]}" -- "$cur")

    if [[ ${#COMPREPLY[@]} -eq 0 && ${#noun_aliases[@]} -gt 0 && ${#must_have_one_noun[@]} -ne 0 ]]; then
        while IFS='' read -r comp; do
            COMPREPLY+=("$comp")
        done < <(compgen -W "${noun_aliases[*]}" -- "$cur")
    fi

    if [[ ${#COMPREPLY[@]} -eq 0 ]]; then
        if declare -F __@{VARNAME}_custom_func >/dev/null; then
            __@{VARNAME}_custom_func
        else
            declare -F __custom_func >/dev/null && __custom_func
        fi
    fi

    # bash-completion >= 2 only
    if declare -F __ltrim_colon_completions >/dev/null; then
        __ltrim_colon_completions "$cur"
    fi

    # no space after a lone --flag=
    if [[ "${#COMPREPLY[@]}" -eq "1" ]] && [[ $(type -t compopt) = "builtin" ]] && [[ "${COMPREPLY[0]}" == --*= ]]; then
       compopt -o nospace
    fi
}

# Arguments look like "ext1|ext2|extn".
__@{VARNAME}_handle_filename_extension_flag()
{
    local ext="$1"
    _filedir "@(${ext})"
}

__@{VARNAME}_handle_subdirs_in_dir_flag()
{
    local dir="$1"
    pushd "${dir}" >/dev/null 2>&1 && _filedir -d && popd >/dev/null 2>&1 || return
}

__@{VARNAME}_handle_flag()
{
    __@{VARNAME}_debug "${FUNCNAME[0]}: c is $c words[c] is ${words[c]}"

    local flagname=${words[c]}
    local flagvalue=""
    if [[ ${words[c]} == *"="* ]]; then
        flagvalue=${flagname#*=}
        flagname=${flagname%%=*}
        flagname="${flagname}="
    fi
    __@{VARNAME}_debug "${FUNCNAME[0]}: looking for ${flagname}"
    if __@{VARNAME}_contains_word "${flagname}" "${must_have_one_flag[@]}"; then
        must_have_one_flag=()
    fi

    # a flag local to this command hides the subcommands
    if __@{VARNAME}_contains_word "${flagname}" "${local_nonpersistent_flags[@]}"; then
      commands=()
    fi

    # associative arrays need bash 4
    if [[ -z "${BASH_VERSION:-}" || "${BASH_VERSINFO[0]:-}" -gt 3 ]]; then
        if [ -n "${flagvalue}" ] ; then
            flaghash[${flagname}]=${flagvalue}
        elif [ -n "${words[ $((c+1)) ]}" ] ; then
            flaghash[${flagname}]=${words[ $((c+1)) ]}
        else
            flaghash[${flagname}]="true"
        fi
    fi

    # skip the value of a two word flag
    if [[ ${words[c]} != *"="* ]] && __@{VARNAME}_contains_word "${words[c]}" "${two_word_flags[@]}"; then
        __@{VARNAME}_debug "${FUNCNAME[0]}: found a flag ${words[c]}, skip the next argument"
        c=$((c+1))
        if [[ $c -eq $cword ]]; then
            commands=()
        fi
    fi

    c=$((c+1))

}

__@{VARNAME}_handle_noun()
{
    __@{VARNAME}_debug "${FUNCNAME[0]}: c is $c words[c] is ${words[c]}"

    if __@{VARNAME}_contains_word "${words[c]}" "${must_have_one_noun[@]}"; then
        must_have_one_noun=()
    elif __@{VARNAME}_contains_word "${words[c]}" "${noun_aliases[@]}"; then
        must_have_one_noun=()
    fi

    nouns+=("${words[c]}")
    c=$((c+1))
}

__@{VARNAME}_handle_command()
{
    __@{VARNAME}_debug "${FUNCNAME[0]}: c is $c words[c] is ${words[c]}"

    local next_command
    if [[ -n ${last_command} ]]; then
        next_command="_${last_command}_${words[c]//:/__}"
    else
        if [[ $c -eq 0 ]]; then
            next_command="_@{VARNAME}_root_command"
        else
            next_command="_${words[c]//:/__}"
        fi
    fi
    c=$((c+1))
    __@{VARNAME}_debug "${FUNCNAME[0]}: looking for ${next_command}"
    declare -F "$next_command" >/dev/null && $next_command
}

__@{VARNAME}_handle_word()
{
    if [[ $c -ge $cword ]]; then
        __@{VARNAME}_handle_reply
        return
    fi
    __@{VARNAME}_debug "${FUNCNAME[0]}: c is $c words[c] is ${words[c]}"
    if [[ "${words[c]}" == -* ]]; then
        __@{VARNAME}_handle_flag
    elif __@{VARNAME}_contains_word "${words[c]}" "${commands[@]}"; then
        __@{VARNAME}_handle_command
    elif [[ $c -eq 0 ]]; then
        __@{VARNAME}_handle_command
    elif __@{VARNAME}_contains_word "${words[c]}" "${command_aliases[@]}"; then
        if [[ -z "${BASH_VERSION:-}" || "${BASH_VERSINFO[0]:-}" -gt 3 ]]; then
            words[c]=${aliashash[${words[c]}]}
            __@{VARNAME}_handle_command
        else
            __@{VARNAME}_handle_noun
        fi
    else
        __@{VARNAME}_handle_noun
    fi
    __@{VARNAME}_handle_word
}

""")


_POSTSCRIPT = ScriptTemplate(r"""__start_@{VARNAME}()
{
    local cur prev words cword split
    declare -A flaghash 2>/dev/null || :
    declare -A aliashash 2>/dev/null || :
    if declare -F _init_completion >/dev/null 2>&1; then
        _init_completion -s || return
    else
        __@{VARNAME}_init_completion -n "=" || return
    fi

    local c=0
    local flag_parsing_disabled=
    local flags=()
    local two_word_flags=()
    local local_nonpersistent_flags=()
    local flags_with_completion=()
    local flags_completion=()
    local commands=("@{NAME}")
    local command_aliases=()
    local must_have_one_flag=()
    local must_have_one_noun=()
    local has_completion_function=""
    local last_command=""
    local nouns=()
    local noun_aliases=()

    __@{VARNAME}_handle_word
}

if [[ $(type -t compopt) = "builtin" ]]; then
    complete -o default -F __start_@{VARNAME} @{NAME}
else
    complete -o default -o nospace -F __start_@{VARNAME} @{NAME}
fi

# ex: ts=4 sw=4 et filetype=sh
""")


def generate(root, /, *, descriptions=True):
    """
    Render the protocol-driven bash script for the program rooted at `root`.
    """
    return _PROTOCOL.safe_substitute(
        NAME=root.name,
        VARNAME=varname(root.name),
        REQUEST=COMPLETE_REQUEST if descriptions else COMPLETE_NO_DESC_REQUEST,
        MARKER=ACTIVE_HELP_MARKER,
        **directive_values(),
    )


# --- the static script ------------------------------------------------------

def _quote(text):
    return '"%s"' % text.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")


def _function_name(command):
    path = [varname(command.root.name)]
    path.extend(node.name.replace(":", "__") for node in command.path[1:])
    return "_".join(path)


def _offered(command):
    return [
        child for child in command.commands()
        if child.is_available_command() or child is command.help_command
    ]


def _write_aliases(lines, command):
    if not command.aliases:
        return
    lines.append('    if [[ -z "${BASH_VERSION:-}" || "${BASH_VERSINFO[0]:-}" -gt 3 ]]; then')
    for alias in sorted(command.aliases):
        lines.append("        command_aliases+=(%s)" % _quote(alias))
        lines.append("        aliashash[%s]=%s" % (_quote(alias), _quote(command.name)))
    lines.append("    fi")


def _write_commands(lines, command):
    lines.append("    commands=()")
    for child in _offered(command):
        lines.append("    commands+=(%s)" % _quote(child.name))
        _write_aliases(lines, child)
    lines.append("")


def _write_flag_handler(lines, name, flag, prefix):
    annotations = flag.annotations
    if FILENAME_EXT_ANNOTATION in annotations:
        extensions = annotations[FILENAME_EXT_ANNOTATION]
        if extensions:
            handler = "__%s_handle_filename_extension_flag %s" % (prefix, "|".join(extensions))
        else:
            handler = "_filedir"
        lines.append("    flags_with_completion+=(%s)" % _quote(name))
        lines.append("    flags_completion+=(%s)" % _quote(handler))
    custom = annotations.get(CUSTOM_ANNOTATION)
    if flag.completer is not Unset:
        custom = ["__%s_handle_program_completion" % prefix]
    if custom is not None:
        lines.append("    flags_with_completion+=(%s)" % _quote(name))
        if custom:
            lines.append("    flags_completion+=(%s)" % _quote("; ".join(custom)))
        else:
            lines.append("    flags_completion+=(:)")
    if SUBDIRS_IN_DIR_ANNOTATION in annotations:
        directories = annotations[SUBDIRS_IN_DIR_ANNOTATION]
        if len(directories) == 1:
            handler = "__%s_handle_subdirs_in_dir_flag %s" % (prefix, directories[0])
        else:
            handler = "_filedir -d"
        lines.append("    flags_with_completion+=(%s)" % _quote(name))
        lines.append("    flags_completion+=(%s)" % _quote(handler))


def _write_flag(lines, flag, prefix):
    two_words = flag.no_opt_default is None
    lines.append('    flags+=("--%s%s")' % (flag.name, "=" if two_words else ""))
    if two_words:
        lines.append('    two_word_flags+=("--%s")' % flag.name)
    _write_flag_handler(lines, "--" + flag.name, flag, prefix)
    if flag.shorthand:
        lines.append('    %sflags+=("-%s")' % ("two_word_" if two_words else "", flag.shorthand))
        _write_flag_handler(lines, "-" + flag.shorthand, flag, prefix)


def _write_local_flag(lines, flag):
    lines.append('    local_nonpersistent_flags+=("--%s")' % flag.name)
    if flag.no_opt_default is None:
        lines.append('    local_nonpersistent_flags+=("--%s=")' % flag.name)
    if flag.shorthand:
        lines.append('    local_nonpersistent_flags+=("-%s")' % flag.shorthand)


def _write_flags(lines, command, prefix):
    lines.extend((
        "    flags=()",
        "    two_word_flags=()",
        "    local_nonpersistent_flags=()",
        "    flags_with_completion=()",
        "    flags_completion=()",
        "",
    ))
    if command.disable_flag_parsing:
        lines.append("    flag_parsing_disabled=1")

    local = command.local_non_persistent_flags()
    for flag in command.local_flags().ordered():
        if not flag.completable:
            continue
        _write_flag(lines, flag, prefix)
        # a set local flag hides subcommands, unless the program traverses them
        if flag.name in local and not command.root.traverse_children:
            _write_local_flag(lines, flag)
    for flag in command.inherited_flags().ordered():
        if flag.completable:
            _write_flag(lines, flag, prefix)
    lines.append("")


def _write_required_flags(lines, command):
    lines.append("    must_have_one_flag=()")
    for flag in command.local_flags().ordered():
        if not flag.completable or REQUIRED_ANNOTATION not in flag.annotations:
            continue
        lines.append('    must_have_one_flag+=("--%s%s")' % (flag.name, "" if flag.typename == "bool" else "="))
        if flag.shorthand:
            lines.append('    must_have_one_flag+=("-%s")' % flag.shorthand)


def _write_nouns(lines, command):
    lines.append("    must_have_one_noun=()")
    for value in sorted(command.valid_args):
        # bash v1 has no room for descriptions
        lines.append("    must_have_one_noun+=(%s)" % _quote(value.split("\t", 1)[0]))
    if command.valid_args_function is not Unset:
        lines.append("    has_completion_function=1")


def _write_noun_aliases(lines, command):
    lines.append("    noun_aliases=()")
    for value in sorted(command.arg_aliases):
        lines.append("    noun_aliases+=(%s)" % _quote(value))


def _write_command(lines, command, prefix):
    for child in _offered(command):
        _write_command(lines, child, prefix)

    name = _function_name(command)
    if command.parent is None:
        lines.append("_%s_root_command()" % name)
    else:
        lines.append("_%s()" % name)
    lines.extend((
        "{",
        "    last_command=%s" % _quote(name),
        "",
        "    command_aliases=()",
        "",
    ))
    _write_commands(lines, command)
    _write_flags(lines, command, prefix)
    _write_required_flags(lines, command)
    _write_nouns(lines, command)
    _write_noun_aliases(lines, command)
    lines.append("}")
    lines.append("")


def generate_legacy(root, /):
    """
    Render the self-contained bash script for the program rooted at `root`.

    Hints are switched off for the program calls this script makes, since it
    has no way of showing them.
    """
    values = dict(
        NAME=root.name,
        VARNAME=varname(root.name),
        REQUEST=COMPLETE_NO_DESC_REQUEST,
        ACTIVE_HELP=active_help_variable(root.name),
        **directive_values(),
    )
    lines = [_PREAMBLE.safe_substitute(values)]
    if root.bash_completion_function:
        lines.append(root.bash_completion_function)
    _write_command(lines, root, values["VARNAME"])
    lines.append(_POSTSCRIPT.safe_substitute(values))
    return "\n".join(lines)


__all__ = (
    "generate",
    "generate_legacy",
)
