"""
Halyard PowerShell adapter: a protocol-driven argument completer.
"""
from .completions import (
    COMPLETE_NO_DESC_REQUEST,
    COMPLETE_REQUEST,
    ScriptTemplate,
    active_help_variable,
    directive_values,
)
from .utils import *

_SCRIPT = ScriptTemplate(r"""# powershell completion for @{NAME}                          -*- shell-script -*-

function __@{VARNAME}_debug {
    if ($env:BASH_COMP_DEBUG_FILE) {
        "$args" | Out-File -Append -FilePath "$env:BASH_COMP_DEBUG_FILE"
    }
}

filter __@{VARNAME}_escapeStringWithSpecialChars {
    $_ -replace '\s|#|@|\$|;|,|''|\{|\}|\(|\)|"|`|\||<|>|&','`$&'
}

[scriptblock]${__@{VARNAME}CompleterBlock} = {
    param(
            $WordToComplete,
            $CommandAst,
            $CursorPosition
        )

    $Command = $CommandAst.CommandElements
    $Command = "$Command"

    __@{VARNAME}_debug ""
    __@{VARNAME}_debug "========= starting completion logic =========="
    __@{VARNAME}_debug "WordToComplete: $WordToComplete Command: $Command CursorPosition: $CursorPosition"

    # Completion happens at the cursor; $Command lacks the trailing space.
    if ($Command.Length -gt $CursorPosition) {
        $Command=$Command.Substring(0,$CursorPosition)
    }
    __@{VARNAME}_debug "Truncated command: $Command"

    $ShellCompDirectiveError=@{ERROR}
    $ShellCompDirectiveNoSpace=@{NO_SPACE}
    $ShellCompDirectiveNoFileComp=@{NO_FILE_COMP}
    $ShellCompDirectiveFilterFileExt=@{FILTER_FILE_EXT}
    $ShellCompDirectiveFilterDirs=@{FILTER_DIRS}
    $ShellCompDirectiveKeepOrder=@{KEEP_ORDER}

    $Program,$Arguments = $Command.Split(" ",2)

    $RequestComp="$Program @{REQUEST} $Arguments"
    __@{VARNAME}_debug "RequestComp: $RequestComp"

    # $WordToComplete is wrong when the cursor moved; use the last argument.
    if ($WordToComplete -ne "" ) {
        $WordToComplete = $Arguments.Split(" ")[-1]
    }
    __@{VARNAME}_debug "New WordToComplete: $WordToComplete"

    $IsEqualFlag = ($WordToComplete -Like "--*=*" )
    if ( $IsEqualFlag ) {
        __@{VARNAME}_debug "Completing equal sign flag"
        $Flag,$WordToComplete = $WordToComplete.Split("=",2)
    }

    if ( $WordToComplete -eq "" -And ( -Not $IsEqualFlag )) {
        # The last word is complete; an empty argument says so to the program.
        __@{VARNAME}_debug "Adding extra empty parameter"
        # Legacy argument passing needs `"`" for an empty argument.
        if ($PSVersionTable.PsVersion -lt [version]'7.2.0' -or
            ($PSVersionTable.PsVersion -lt [version]'7.3.0' -and -not [ExperimentalFeature]::IsEnabled("PSNativeCommandArgumentPassing")) -or
            (($PSVersionTable.PsVersion -ge [version]'7.3.0' -or [ExperimentalFeature]::IsEnabled("PSNativeCommandArgumentPassing")) -and
              $PSNativeCommandArgumentPassing -eq 'Legacy')) {
             $RequestComp="$RequestComp" + ' `"`"'
        } else {
             $RequestComp="$RequestComp" + ' ""'
        }
    }

    __@{VARNAME}_debug "Calling $RequestComp"
    # PowerShell cannot display hints
    ${env:@{ACTIVE_HELP}}=0

    Invoke-Expression -OutVariable out "$RequestComp" 2>&1 | Out-Null

    # The directive is on the last line.
    [int]$Directive = $Out[-1].TrimStart(':')
    if ($Directive -eq "") {
        $Directive = 0
    }
    __@{VARNAME}_debug "The completion directive is: $Directive"

    $Out = $Out | Where-Object { $_ -ne $Out[-1] }
    __@{VARNAME}_debug "The completions are: $Out"

    if (($Directive -band $ShellCompDirectiveError) -ne 0 ) {
        __@{VARNAME}_debug "Received error from the completion request"
        return
    }

    $Longest = 0
    [Array]$Values = $Out | ForEach-Object {
        $Name, $Description = $_.Split("`t",2)
        __@{VARNAME}_debug "Name: $Name Description: $Description"

        if ($Longest -lt $Name.Length) {
            $Longest = $Name.Length
        }

        # CompletionResult rejects an empty description.
        if (-Not $Description) {
            $Description = " "
        }
        New-Object -TypeName PSCustomObject -Property @{
            Name = "$Name"
            Description = "$Description"
        }
    }


    $Space = " "
    if (($Directive -band $ShellCompDirectiveNoSpace) -ne 0 ) {
        __@{VARNAME}_debug "ShellCompDirectiveNoSpace is called"
        $Space = ""
    }

    if ((($Directive -band $ShellCompDirectiveFilterFileExt) -ne 0 ) -or
       (($Directive -band $ShellCompDirectiveFilterDirs) -ne 0 ))  {
        __@{VARNAME}_debug "ShellCompDirectiveFilterFileExt ShellCompDirectiveFilterDirs are not supported"
        return
    }

    $Values = $Values | Where-Object {
        $_.Name -like "$WordToComplete*"

        if ( $IsEqualFlag ) {
            __@{VARNAME}_debug "Join the equal sign flag back to the completion value"
            $_.Name = $Flag + "=" + $_.Name
        }
    }

    if (($Directive -band $ShellCompDirectiveKeepOrder) -eq 0 ) {
        $Values = $Values | Sort-Object -Property Name
    }

    if (($Directive -band $ShellCompDirectiveNoFileComp) -ne 0 ) {
        __@{VARNAME}_debug "ShellCompDirectiveNoFileComp is called"

        if ($Values.Length -eq 0) {
            # An empty string keeps the shell from completing paths.
            ""
            return
        }
    }

    $Mode = (Get-PSReadLineKeyHandler | Where-Object {$_.Key -eq "Tab" }).Function
    __@{VARNAME}_debug "Mode: $Mode"

    $Values | ForEach-Object {

        $comp = $_

        # Modes: Complete (bash like), MenuComplete (zsh like), TabCompleteNext (default)
        switch ($Mode) {

            "Complete" {

                if ($Values.Length -eq 1) {
                    __@{VARNAME}_debug "Only one completion left"

                    $CompletionText = $($comp.Name | __@{VARNAME}_escapeStringWithSpecialChars) + $Space
                    if ($ExecutionContext.SessionState.LanguageMode -eq "FullLanguage"){
                        [System.Management.Automation.CompletionResult]::new($CompletionText, "$($comp.Name)", 'ParameterValue', "$($comp.Description)")
                    } else {
                        $CompletionText
                    }

                } else {
                    while($comp.Name.Length -lt $Longest) {
                        $comp.Name = $comp.Name + " "
                    }

                    if ($($comp.Description) -eq " " ) {
                        $Description = ""
                    } else {
                        $Description = "  ($($comp.Description))"
                    }

                    $CompletionText = "$($comp.Name)$Description"
                    if ($ExecutionContext.SessionState.LanguageMode -eq "FullLanguage"){
                        [System.Management.Automation.CompletionResult]::new($CompletionText, "$($comp.Name)$Description", 'ParameterValue', "$($comp.Description)")
                    } else {
                        $CompletionText
                    }
                }
             }

            "MenuComplete" {
                $CompletionText = $($comp.Name | __@{VARNAME}_escapeStringWithSpecialChars) + $Space
                if ($ExecutionContext.SessionState.LanguageMode -eq "FullLanguage"){
                    [System.Management.Automation.CompletionResult]::new($CompletionText, "$($comp.Name)", 'ParameterValue', "$($comp.Description)")
                } else {
                    $CompletionText
                }
            }

            Default {
                # no trailing space: the user presses space to accept
                $CompletionText = $($comp.Name | __@{VARNAME}_escapeStringWithSpecialChars)
                if ($ExecutionContext.SessionState.LanguageMode -eq "FullLanguage"){
                    [System.Management.Automation.CompletionResult]::new($CompletionText, "$($comp.Name)", 'ParameterValue', "$($comp.Description)")
                } else {
                    $CompletionText
                }
            }
        }

    }
}

Register-ArgumentCompleter -CommandName '@{NAME}' -ScriptBlock ${__@{VARNAME}CompleterBlock}
""")


def generate(root, /, *, descriptions=True):
    """Render the PowerShell script for the program rooted at `root`."""
    return _SCRIPT.safe_substitute(
        NAME=root.name,
        VARNAME=varname(root.name),
        REQUEST=COMPLETE_REQUEST if descriptions else COMPLETE_NO_DESC_REQUEST,
        ACTIVE_HELP=active_help_variable(root.name),
        **directive_values(),
    )


__all__ = (
    "generate",
)
